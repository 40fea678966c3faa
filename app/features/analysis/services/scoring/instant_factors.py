"""
Phase A ("instant") factors of the AI Search Mastery framework.

Each analyzer is deterministic and works only on data already extracted
from the page, so the whole set runs in well under a second. A factor that
raises is replaced by a zero-confidence fallback instead of failing the run.
"""
import re
import time
from typing import Callable, List, Optional

from app.features.analysis.schemas.factor import FactorScore, PageSnapshot
from app.platform.logger import get_logger

logger = get_logger(__name__)

TITLE_SPECIAL_CHARS = re.compile(r"[|•·→←↑↓★☆✓✗⚡🔥💡📈📊⭐]")
TITLE_POWER_WORDS = re.compile(r"\b(how|what|why|best|guide|tips|complete|ultimate|2024|2025)\b", re.IGNORECASE)

DESCRIPTION_CTA = re.compile(
    r"\b(learn|discover|find|get|download|read|explore|see|try|start|join|visit|click)\b", re.IGNORECASE
)
DESCRIPTION_QUESTION_WORDS = re.compile(r"\b(how|what|why|when|where|who)\b", re.IGNORECASE)

# Keyword is case-insensitive, the captured name must be capitalised
_NAME = r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"
AUTHOR_PATTERNS = [
    re.compile(r"(?i:\bby)\s+" + _NAME),
    re.compile(r"(?i:\bauthor)[:\s]+" + _NAME),
    re.compile(r"(?i:\bwritten\s+by)\s+" + _NAME),
    re.compile(r"(?i:\bcreated\s+by)\s+" + _NAME),
    re.compile(r"@([A-Za-z][A-Za-z0-9_]+)"),
]
AUTHOR_FALSE_POSITIVES = re.compile(
    r"^(the|and|or|but|with|from|about|news|blog|post|article|page|site|home|contact|login|register)$",
    re.IGNORECASE,
)
AUTHOR_BIO = re.compile(r"author bio|about the author|biography|credentials|expertise", re.IGNORECASE)
AUTHOR_LINKS = re.compile(r"author profile|author page|more by|other articles", re.IGNORECASE)
AUTHOR_EXPERTISE = re.compile(
    r"\b(expert|specialist|certified|phd|md|professor|director|founder|ceo)\b", re.IGNORECASE
)
AUTHOR_CONTACT = re.compile(r"\b(contact|email|twitter|linkedin|social)\b", re.IGNORECASE)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class InstantFactorService:

    @staticmethod
    def analyze_https(url: str) -> FactorScore:
        """AI.1.1 - protocol check, fully certain."""
        started = time.perf_counter()
        is_https = url.lower().startswith("https://")

        evidence = [
            "Site uses HTTPS protocol" if is_https else "Site uses HTTP protocol",
            "Secure connection established" if is_https else "Insecure connection detected",
        ]
        recommendations = [] if is_https else [
            "Enable HTTPS for improved security and SEO",
            "Configure SSL/TLS certificate",
            "Implement HTTP to HTTPS redirects",
        ]

        return FactorScore(
            factor_id="AI.1.1",
            factor_name="HTTPS Security",
            pillar="AI",
            score=100 if is_https else 0,
            confidence=100,
            evidence=evidence,
            recommendations=recommendations,
            processing_time_ms=_elapsed_ms(started),
        )

    @staticmethod
    def analyze_title(title: Optional[str]) -> FactorScore:
        """AI.1.2 - length band plus readability and engagement signals."""
        started = time.perf_counter()
        title = (title or "").strip()
        score = 0
        evidence: List[str] = []
        recommendations: List[str] = []

        if not title:
            evidence.append("No title tag found")
            recommendations.append("Add a descriptive title tag to improve SEO")
            recommendations.append("Keep title between 50-60 characters for optimal display")
        else:
            length = len(title)
            evidence.append(f"Title length: {length} characters")
            evidence.append(f'Title: "{title}"')

            if 50 <= length <= 60:
                score += 40
                evidence.append("Title length is optimal for search results")
            elif 40 <= length <= 70:
                score += 30
                evidence.append("Title length is acceptable")
            elif 30 <= length <= 80:
                score += 20
                evidence.append("Title length could be optimized")
                if length < 40:
                    recommendations.append("Consider making title longer for better keyword coverage")
                if length > 70:
                    recommendations.append("Consider shortening title to prevent truncation in search results")
            else:
                score += 10
                evidence.append("Title length is not optimal")
                if length < 30:
                    recommendations.append("Title is too short - add more descriptive keywords")
                if length > 80:
                    recommendations.append("Title is too long - will be truncated in search results")

            word_count = len(title.split())
            if 4 <= word_count <= 12:
                score += 20
                evidence.append("Good word count for readability")
            else:
                score += 10
                if word_count < 4:
                    recommendations.append("Add more descriptive words to title")
                if word_count > 12:
                    recommendations.append("Simplify title for better readability")

            if re.search(r"\d", title):
                score += 15
                evidence.append("Includes numbers for specificity")

            if TITLE_SPECIAL_CHARS.search(title):
                score += 10
                evidence.append("Uses engaging special characters")

            if TITLE_POWER_WORDS.search(title):
                score += 15
                evidence.append("Contains high-value keywords")

            score = min(score, 100)

            if score >= 80:
                evidence.append("Excellent title optimization")
            elif score >= 60:
                evidence.append("Good title, minor improvements possible")
                recommendations.append("Consider adding numbers or power words for better engagement")
            elif score >= 40:
                evidence.append("Average title, several improvements needed")
                recommendations.append("Optimize title length and add engaging elements")
            else:
                evidence.append("Title needs significant optimization")
                recommendations.append("Rewrite title with proper length and engaging keywords")

        return FactorScore(
            factor_id="AI.1.2",
            factor_name="Title Optimization",
            pillar="AI",
            score=score,
            confidence=100,
            evidence=evidence,
            recommendations=recommendations,
            processing_time_ms=_elapsed_ms(started),
        )

    @staticmethod
    def analyze_meta_description(description: Optional[str]) -> FactorScore:
        """AI.1.3 - length band, word count, call-to-action and punctuation."""
        started = time.perf_counter()
        description = (description or "").strip()
        score = 0
        evidence: List[str] = []
        recommendations: List[str] = []

        if not description:
            evidence.append("No meta description found")
            recommendations.append("Add a meta description between 150-160 characters")
            recommendations.append("Include target keywords and call-to-action")
        else:
            length = len(description)
            evidence.append(f"Meta description length: {length} characters")
            evidence.append(f'Meta description: "{description}"')

            if 150 <= length <= 160:
                score += 50
                evidence.append("Meta description length is optimal")
            elif 140 <= length <= 170:
                score += 40
                evidence.append("Meta description length is good")
            elif 120 <= length <= 180:
                score += 30
                evidence.append("Meta description length is acceptable")
                if length < 140:
                    recommendations.append("Consider expanding meta description for better keyword coverage")
                if length > 160:
                    recommendations.append("Consider shortening to prevent truncation in search results")
            else:
                score += 15
                evidence.append("Meta description length needs optimization")
                if length < 120:
                    recommendations.append("Meta description is too short - expand with more details")
                if length > 180:
                    recommendations.append("Meta description is too long - will be truncated")

            word_count = len(description.split())
            if 20 <= word_count <= 30:
                score += 20
                evidence.append("Good word count for meta description")
            else:
                score += 10
                if word_count < 20:
                    recommendations.append("Add more descriptive content to meta description")
                if word_count > 30:
                    recommendations.append("Simplify meta description for better readability")

            if DESCRIPTION_CTA.search(description):
                score += 15
                evidence.append("Contains call-to-action words")
            else:
                recommendations.append("Add call-to-action words to encourage clicks")

            if re.search(r"\d", description):
                score += 10
                evidence.append("Includes specific numbers or data")

            if DESCRIPTION_QUESTION_WORDS.search(description):
                score += 5
                evidence.append("Uses question words for engagement")

            if description[-1] in ".!?":
                score += 5
                evidence.append("Properly punctuated")
            else:
                recommendations.append("End meta description with proper punctuation")

            score = min(score, 100)

            if score >= 85:
                evidence.append("Excellent meta description optimization")
            elif score >= 70:
                evidence.append("Good meta description, minor improvements possible")
            elif score >= 50:
                evidence.append("Average meta description, several improvements needed")
            else:
                evidence.append("Meta description needs significant optimization")
                recommendations.append("Rewrite meta description with proper length and engaging content")

        return FactorScore(
            factor_id="AI.1.3",
            factor_name="Meta Description",
            pillar="AI",
            score=score,
            confidence=100,
            evidence=evidence,
            recommendations=recommendations,
            processing_time_ms=_elapsed_ms(started),
        )

    @staticmethod
    def find_authors(content: str) -> List[str]:
        """Candidate author names in first-seen order, false positives dropped."""
        found: List[str] = []
        for pattern in AUTHOR_PATTERNS:
            for match in pattern.finditer(content or ""):
                author = match.group(1).strip()
                if AUTHOR_FALSE_POSITIVES.match(author):
                    continue
                if author not in found:
                    found.append(author)
        return found

    @staticmethod
    def analyze_author(content: str) -> FactorScore:
        """A.2.1 - bylines and credibility signals in the visible text."""
        started = time.perf_counter()
        score = 0
        evidence: List[str] = []
        recommendations: List[str] = []

        authors = InstantFactorService.find_authors(content)

        if not authors:
            evidence.append("No author information detected")
            recommendations.append("Add clear author bylines to establish credibility")
            recommendations.append("Include author bio or credentials")
            recommendations.append('Consider adding "About the Author" section')
        else:
            evidence.append(f"Found {len(authors)} potential author(s): {', '.join(authors)}")
            score += 40

            if len(authors) > 1:
                score += 15
                evidence.append("Multiple authors detected - good for collaborative authority")

            if AUTHOR_BIO.search(content):
                score += 20
                evidence.append("Author bio or credentials found")
            else:
                recommendations.append("Add author bio to establish expertise")

            if AUTHOR_LINKS.search(content):
                score += 15
                evidence.append("Author profile links detected")
            else:
                recommendations.append("Link to author profile or other articles")

            if AUTHOR_EXPERTISE.search(content):
                score += 15
                evidence.append("Author expertise indicators found")

            if AUTHOR_CONTACT.search(content):
                score += 10
                evidence.append("Author contact information available")
            else:
                recommendations.append("Provide author contact or social media links")

            score = min(score, 100)

            if score >= 80:
                evidence.append("Excellent author information and credibility")
            elif score >= 60:
                evidence.append("Good author presence, minor improvements possible")
            elif score >= 40:
                evidence.append("Basic author information present")

        return FactorScore(
            factor_id="A.2.1",
            factor_name="Author Information",
            pillar="A",
            score=score,
            confidence=90,
            evidence=evidence,
            recommendations=recommendations,
            processing_time_ms=_elapsed_ms(started),
        )

    @staticmethod
    def fallback(factor_id: str, factor_name: str, pillar: str, reason: str) -> FactorScore:
        return FactorScore(
            factor_id=factor_id,
            factor_name=factor_name,
            pillar=pillar,
            score=0,
            confidence=0,
            evidence=[reason],
            recommendations=[f"Unable to analyze {factor_name} - please check manually"],
        )

    @staticmethod
    def calculate_overall_score(factors: List[FactorScore]) -> int:
        """Confidence-weighted mean of factor scores, rounded to an int."""
        total_weight = sum(f.weight for f in factors)
        if not factors or total_weight <= 0:
            return 0
        total = sum(f.score * (f.confidence / 100) * f.weight for f in factors)
        return int(round(total / total_weight))

    @staticmethod
    def analyze(page: PageSnapshot) -> List[FactorScore]:
        """Run every instant factor against one page."""
        analyzers: List[tuple[str, str, str, Callable[[], FactorScore]]] = [
            ("AI.1.1", "HTTPS Security", "AI", lambda: InstantFactorService.analyze_https(page.final_url or page.url)),
            ("AI.1.2", "Title Optimization", "AI", lambda: InstantFactorService.analyze_title(page.title)),
            ("AI.1.3", "Meta Description", "AI", lambda: InstantFactorService.analyze_meta_description(page.description)),
            ("A.2.1", "Author Information", "A", lambda: InstantFactorService.analyze_author(page.content)),
        ]

        results = []
        for factor_id, name, pillar, run in analyzers:
            try:
                results.append(run())
            except Exception as e:
                logger.error(f"Factor {factor_id} failed: {e}")
                results.append(InstantFactorService.fallback(factor_id, name, pillar, f"Error analyzing {name}: {e}"))
        return results
