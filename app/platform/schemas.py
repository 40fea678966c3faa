from typing import List

from pydantic import BaseModel

from app.platform.exceptions import InvalidRequestError


class FunctionRequest(BaseModel):
    """
    Request body for the function endpoints.

    Fields are declared optional so a missing value reaches the handler and
    is reported as one readable 400, instead of a validation error list.
    """

    def missing_fields(self, *names: str) -> List[str]:
        return [name for name in names if not getattr(self, name, None)]

    def require(self, *names: str) -> None:
        missing = self.missing_fields(*names)
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")
