from datetime import timedelta

import pytest

from tokenradar.detection.social import (
    AuthorWeights,
    HeuristicOrganicClassifier,
    SocialSignalExtractor,
    extract_mentions,
    find_token_identifiers,
)
from tokenradar.models import MentionCluster, Post

ADDR = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
OTHER_ADDR = "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"


def post(author, text, now, minutes_ago=0, likes=10, reshares=0, id=None):
    return Post(
        id=id or f"{author}-{minutes_ago}",
        text=text,
        author=author,
        created_at=now - timedelta(minutes=minutes_ago),
        likes=likes,
        reshares=reshares,
    )


# -- identifier matching --------------------------------------------------------

@pytest.mark.parametrize("text,expected", [
    ("$BONK to the moon", [("$BONK", None)]),
    ("buying ($WIF) now", [("$WIF", None)]),
    ("$WIF and $WIF again", [("$WIF", None)]),
    (f"CA: {ADDR}", [(ADDR, ADDR)]),
    (f"https://dexscreener.com/solana/{ADDR}", [(ADDR, ADDR)]),
    (f"$FOO {ADDR}", [("$FOO", None), (ADDR, ADDR)]),
])
def test_identifiers_found(text, expected):
    assert find_token_identifiers(text) == expected


@pytest.mark.parametrize("text", [
    "$bonk lowercase",
    "x$BONK glued to a word",
    "$BONK2 glued to a digit",
    "$A too short",
    "$ABCDEFGHIJK too long",
    f"abc{ADDR}",
    f"{ADDR}9",
    f"{ADDR[:20]}0{ADDR[20:]}",
    "short 7GCihgDB8fe6KNjn2MYtk run",
    "",
])
def test_identifiers_not_found(text):
    assert find_token_identifiers(text) == []


# -- clustering -------------------------------------------------------------------

def test_extract_mentions_groups_by_identifier(now):
    posts = [
        post("alice", "$FOO is early", now, minutes_ago=30, likes=5),
        post("bob", f"$FOO ca {OTHER_ADDR}", now, minutes_ago=10, likes=15),
        post("alice", "more $FOO", now, minutes_ago=5, likes=10),
    ]

    clusters = extract_mentions(posts)

    foo = clusters["$FOO"]
    assert foo.mention_count == 3
    assert foo.unique_authors == 2
    assert foo.total_engagement == 30
    assert foo.first_seen_at == now - timedelta(minutes=30)
    assert clusters[OTHER_ADDR].address == OTHER_ADDR


# -- weights --------------------------------------------------------------------

def test_author_weights_from_config():
    weights = AuthorWeights.from_config({"social": {"author_tiers": {
        "elite": {"weight": 3.0, "handles": ["Alice"]},
        "news": {"handles": ["alice", "newsbot"]},
    }}})

    assert weights.weight("alice") == 3.0
    assert weights.tier("ALICE") == "elite"
    assert weights.weight("newsbot") == 1.0
    assert weights.weight("stranger") == 1.0
    assert weights.tier("stranger") == "untracked"
    assert sorted(weights.handles) == ["alice", "newsbot"]


# -- organic classifier ---------------------------------------------------------

def cluster_of(posts):
    clusters = extract_mentions(posts)
    assert len(clusters) == 1
    return next(iter(clusters.values()))


def test_copy_paste_campaign_is_coordinated(now):
    text = "🚀 $SCAM next 100x https://t.co/abc"
    posts = [post(a, text, now, minutes_ago=i * 30) for i, a in enumerate(["a", "b", "c"])]

    assert HeuristicOrganicClassifier().classify(cluster_of(posts)) is False


def test_low_engagement_burst_is_coordinated(now):
    posts = [
        post("a", "$PUMP one", now, minutes_ago=0, likes=0),
        post("b", "$PUMP two", now, minutes_ago=0.5, likes=1),
        post("c", "$PUMP three", now, minutes_ago=1, likes=0),
    ]

    assert HeuristicOrganicClassifier().classify(cluster_of(posts)) is False


def test_independent_posts_are_organic(now):
    posts = [
        post("a", "$GOOD looks strong", now, minutes_ago=5),
        post("b", "been watching $GOOD", now, minutes_ago=45),
        post("c", "$GOOD chart is clean", now, minutes_ago=90),
    ]

    assert HeuristicOrganicClassifier().classify(cluster_of(posts)) is True


def test_empty_cluster_cannot_be_judged():
    assert HeuristicOrganicClassifier().classify(MentionCluster(token="$X")) is None


# -- buzz -----------------------------------------------------------------------

def test_buzz_score_components(now):
    extractor = SocialSignalExtractor({})
    cluster = cluster_of([
        post("a", "$FOO one", now, minutes_ago=5),
        post("b", "$FOO two", now, minutes_ago=50),
        post("c", "$FOO three", now, minutes_ago=100),
    ])

    # 7 (3 authors) + 3 (mean weight 1.0) + 2 (avg engagement 10)
    assert extractor.buzz_score(cluster, organic=True) == 12
    assert extractor.buzz_score(cluster, organic=None) == 12
    assert extractor.buzz_score(cluster, organic=False) == 6


def test_author_weight_bonus_is_capped(now):
    weights = AuthorWeights({"elite": {"weight": 5.0, "handles": ["a", "b", "c"]}})
    extractor = SocialSignalExtractor({}, weights=weights)
    cluster = cluster_of([
        post("a", "$FOO one", now, likes=200),
        post("b", "$FOO two", now, minutes_ago=60, likes=200),
        post("c", "$FOO three", now, minutes_ago=120, likes=200),
    ])

    # 7 + min(10, 15) + 10
    assert extractor.buzz_score(cluster) == 27


def test_signals_require_enough_distinct_authors(now):
    extractor = SocialSignalExtractor({})
    posts = [
        post("a", "$FOO one", now, minutes_ago=5),
        post("b", "$FOO two", now, minutes_ago=50),
        post("c", "$FOO three", now, minutes_ago=100),
        post("a", "$BAR one", now, minutes_ago=5),
        post("a", "$BAR two", now, minutes_ago=50),
        post("b", "$BAR three", now, minutes_ago=100),
    ]

    signals = extractor.signals(posts)

    assert [s.token for s in signals] == ["$FOO"]
    assert signals[0].organic is True
    assert signals[0].unique_authors == 3


def test_classifier_failure_means_no_discount(now):
    class Broken:
        def classify(self, cluster):
            raise RuntimeError("model unavailable")

    extractor = SocialSignalExtractor({}, classifier=Broken())
    posts = [post(a, f"$FOO {a}", now, minutes_ago=i * 40) for i, a in enumerate(["a", "b", "c"])]

    signals = extractor.signals(posts)

    assert signals[0].organic is None
    assert signals[0].buzz_score == 12
