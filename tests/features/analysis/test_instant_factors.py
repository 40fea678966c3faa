from app.features.analysis.schemas.factor import FactorScore, PageSnapshot
from app.features.analysis.services.scoring.instant_factors import InstantFactorService


class TestHttps:

    def test_https_scores_full(self):
        result = InstantFactorService.analyze_https("https://example.com")
        assert result.factor_id == "AI.1.1"
        assert result.score == 100
        assert result.confidence == 100
        assert result.recommendations == []

    def test_http_scores_zero(self):
        result = InstantFactorService.analyze_https("http://example.com")
        assert result.score == 0
        assert "Enable HTTPS for improved security and SEO" in result.recommendations


class TestTitle:

    def test_missing_title(self):
        result = InstantFactorService.analyze_title("")
        assert result.score == 0
        assert result.evidence == ["No title tag found"]

    def test_optimal_title(self):
        # 55 characters, 10 words, a number and a power word
        title = "The Complete Guide to AI Search Optimization for 2025 !"
        assert 50 <= len(title) <= 60

        result = InstantFactorService.analyze_title(title)

        assert result.score == 40 + 20 + 15 + 15
        assert "Excellent title optimization" in result.evidence

    def test_short_title(self):
        result = InstantFactorService.analyze_title("Home")
        # length band 10 + word count 10
        assert result.score == 20
        assert "Title is too short - add more descriptive keywords" in result.recommendations

    def test_score_is_capped(self):
        title = "How to Win: 10 Best Tips | The Ultimate Guide ★ 2025 ok"
        result = InstantFactorService.analyze_title(title)
        assert result.score <= 100


class TestMetaDescription:

    def test_missing_description(self):
        result = InstantFactorService.analyze_meta_description(None)
        assert result.score == 0
        assert "No meta description found" in result.evidence

    def test_short_description_without_cta(self):
        result = InstantFactorService.analyze_meta_description("A page about things")
        # length 15 + word count 10, no CTA, no number, no question word, no punctuation
        assert result.score == 25
        assert "Add call-to-action words to encourage clicks" in result.recommendations
        assert "End meta description with proper punctuation" in result.recommendations

    def test_engaging_description(self):
        description = "Learn how to rank in AI search with 5 proven steps."
        result = InstantFactorService.analyze_meta_description(description)
        # length 15 + words 10 + CTA 15 + number 10 + question word 5 + punctuation 5
        assert result.score == 60


class TestAuthor:

    def test_no_author(self):
        result = InstantFactorService.analyze_author("Just some text about cooking.")
        assert result.factor_id == "A.2.1"
        assert result.score == 0
        assert result.confidence == 90

    def test_byline_with_credentials(self):
        content = "Written by Jane Doe. About the author: certified specialist. Follow on LinkedIn."
        result = InstantFactorService.analyze_author(content)
        # author 40 + bio 20 + expertise 15 + contact 10
        assert result.score == 85
        assert "Jane Doe" in result.evidence[0]

    def test_lowercase_words_are_not_names(self):
        assert InstantFactorService.find_authors("made by the team at home") == []

    def test_false_positive_names_are_dropped(self):
        assert InstantFactorService.find_authors("Posted by News") == []

    def test_authors_keep_first_seen_order(self):
        content = "By Alice Smith and later author: Bob Jones"
        assert InstantFactorService.find_authors(content) == ["Alice Smith", "Bob Jones"]


class TestOverall:

    def _factor(self, score, confidence, weight=1.0):
        return FactorScore(
            factor_id="X", factor_name="X", pillar="AI", score=score, confidence=confidence, weight=weight
        )

    def test_confidence_weighted_mean(self):
        factors = [self._factor(100, 100), self._factor(50, 50)]
        # (100 + 25) / 2
        assert InstantFactorService.calculate_overall_score(factors) == 62

    def test_empty_is_zero(self):
        assert InstantFactorService.calculate_overall_score([]) == 0

    def test_analyze_runs_all_four_factors(self):
        page = PageSnapshot(url="https://example.com", title="Example", description=None, content="")
        results = InstantFactorService.analyze(page)
        assert [r.factor_id for r in results] == ["AI.1.1", "AI.1.2", "AI.1.3", "A.2.1"]

    def test_failing_factor_falls_back(self, monkeypatch):
        def broken(title):
            raise RuntimeError("bad title")

        monkeypatch.setattr(InstantFactorService, "analyze_title", staticmethod(broken))
        page = PageSnapshot(url="https://example.com", title="Example")

        results = InstantFactorService.analyze(page)

        title_result = results[1]
        assert title_result.factor_id == "AI.1.2"
        assert title_result.score == 0
        assert title_result.confidence == 0
