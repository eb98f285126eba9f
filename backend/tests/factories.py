import factory
from faker import Faker
from datetime import datetime, timezone

from engageflow.models.engagement import EngagementItem, EngagementStatus, utcnow

fake = Faker()

COMMUNITIES = ["homegym", "fitness", "cycling", "running"]


class EngagementItemFactory(factory.Factory):
    """Factory for creating EngagementItem instances."""

    class Meta:
        model = EngagementItem

    scope = "global"
    source_post_id = factory.Sequence(lambda n: f"post{n:05d}")
    community = factory.LazyFunction(lambda: fake.random_element(COMMUNITIES))
    source_url = factory.LazyAttribute(
        lambda obj: f"https://reddit.com/r/{obj.community}/comments/{obj.source_post_id}/"
    )
    title = factory.LazyFunction(lambda: fake.sentence(nb_words=8))
    body = factory.LazyFunction(lambda: fake.paragraph(nb_sentences=3))
    author = factory.LazyFunction(lambda: fake.user_name())
    matched_keyword = "exercise bike"
    source_score = factory.LazyFunction(lambda: fake.random_int(min=0, max=500))
    source_created_at = factory.LazyFunction(lambda: fake.date_time_this_month(tzinfo=timezone.utc))

    is_recommended = False
    low_relevance = False
    status = EngagementStatus.DISCOVERED
    version = 1
    discovered_at = factory.LazyFunction(utcnow)


class RedditPostFactory(factory.DictFactory):
    """Raw post records as returned by the subreddit search listing."""

    id = factory.Sequence(lambda n: f"abc{n:04d}")
    subreddit = "homegym"
    title = factory.LazyFunction(lambda: fake.sentence(nb_words=8))
    selftext = factory.LazyFunction(lambda: fake.paragraph(nb_sentences=2))
    author = factory.LazyFunction(lambda: fake.user_name())
    score = factory.LazyFunction(lambda: fake.random_int(min=0, max=200))
    created_utc = factory.LazyFunction(lambda: datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc).timestamp())
    permalink = factory.LazyAttribute(lambda obj: f"/r/{obj.subreddit}/comments/{obj.id}/some_title/")


class YouTubeChannelFactory(factory.DictFactory):
    """channels.list items with snippet and statistics."""

    id = factory.Sequence(lambda n: f"UC{n:020d}")
    snippet = factory.LazyFunction(lambda: {
        "title": fake.company(),
        "description": fake.sentence(),
        "customUrl": f"@{fake.user_name()}",
        "thumbnails": {"high": {"url": fake.image_url()}},
    })
    statistics = factory.LazyFunction(lambda: {
        "subscriberCount": str(fake.random_int(min=100, max=100000)),
        "videoCount": str(fake.random_int(min=1, max=500)),
        "viewCount": str(fake.random_int(min=1000, max=10000000)),
    })


def analytics_row(query, day="2026-10-01", page="https://example.com/", country="usa", device="DESKTOP",
                  clicks=3, impressions=120):
    return {
        "keys": [query, page, country, device, day],
        "clicks": clicks,
        "impressions": impressions,
        "ctr": clicks / impressions if impressions else 0.0,
        "position": 7.5,
    }
