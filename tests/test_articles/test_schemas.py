"""Tests for article models and source resolution."""

from newsflow.articles.schemas import (
    Article,
    ArticleStatistics,
    ArticleStatus,
    resolve_source_id,
)


class TestArticle:
    def test_accepts_legacy_field_names(self):
        article = Article.model_validate(
            {
                "id": 5,
                "titulo": "Manchete",
                "link": "https://x.example.com/a",
                "conteudo": "Texto",
                "featured_image_url": "https://x.example.com/a.jpg",
                "wordpress_post_id": 991,
                "status": None,
            }
        )

        assert article.id == "5"
        assert article.title == "Manchete"
        assert article.original_url == "https://x.example.com/a"
        assert article.original_content == "Texto"
        assert article.image_url == "https://x.example.com/a.jpg"
        assert article.wordpress_post_id == "991"
        assert article.status == ArticleStatus.PENDING

    def test_terminal_statuses(self, make_article):
        assert make_article(status="ignored").is_terminal
        assert make_article(status="deleted").is_terminal
        assert not make_article(status="published").is_terminal

    def test_monitoring_id_from_embedded_record(self, make_article):
        assert make_article(news_monitoring={"id": 7}).monitoring_id == "7"
        assert make_article(news_monitoring_id=8, news_monitoring={"id": 7}).monitoring_id == "8"


class TestResolveSourceId:
    def test_direct_reference_wins(self, make_article):
        article = make_article(news_source_id=1, metadata={"source_id": 2}, source_id=3)

        assert resolve_source_id(article) == "1"

    def test_metadata_before_legacy_field(self, make_article):
        article = make_article(metadata={"source_id": 2}, source_id=3)

        assert resolve_source_id(article) == "2"

    def test_legacy_field(self, make_article):
        assert resolve_source_id(make_article(source_id=3)) == "3"

    def test_embedded_monitoring_source(self, make_article):
        article = make_article(news_monitoring={"id": 7, "news_source": {"id": 12}})

        assert resolve_source_id(article) == "12"

    def test_monitoring_lookup_table(self, make_article):
        article = make_article(news_monitoring_id=7)

        assert resolve_source_id(article, {"7": "12"}) == "12"
        assert resolve_source_id(article) is None

    def test_unresolvable(self, make_article):
        assert resolve_source_id(make_article()) is None


def test_statistics_count():
    stats = ArticleStatistics(total=3, by_status={"pending": 2, "published": 1})

    assert stats.count(ArticleStatus.PENDING) == 2
    assert stats.count("ignored") == 0
