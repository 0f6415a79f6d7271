"""
Caption classifier

Keyword-scored categorisation of a caption into three independent taxonomies:
- hook type (how the video grabs attention)
- content format (how the video is structured)
- emotional trigger (what the video makes the viewer feel)

Each trigger phrase found as a substring of the lower-cased caption adds one
point to its category. Phrases may overlap and every hit counts. The category
with the strictly highest score wins; ties go to the category declared first.
A caption with no hits falls back to the taxonomy default.

The keyword tables are plain immutable data (tuples), built once at import
and passed into ``classify`` so tests can supply their own.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import NamedTuple


@dataclass(frozen=True)
class Taxonomy:
    name: str
    categories: tuple[tuple[str, tuple[str, ...]], ...]
    default: str

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(label for label, _ in self.categories)


@dataclass(frozen=True)
class ClassifierConfig:
    hook: Taxonomy
    format: Taxonomy
    emotion: Taxonomy
    # Extra points for the Question hook when the caption contains a literal "?".
    question_mark_bonus: int = 2
    question_label: str = "Question"


class Classification(NamedTuple):
    hook_type: str
    content_format: str
    emotional_trigger: str


HOOK_TAXONOMY = Taxonomy(
    name="hook",
    categories=(
        ("Question", ("?", "what", "why", "how", "did you know", "have you", "can you", "would you", "ever wondered")),
        ("Controversial", ("unpopular opinion", "hot take", "everyone is wrong", "nobody talks", "disagree", "controversial")),
        ("Story", ("story", "happened", "experience", "told me", "let me tell", "one time", "remember when", "psst", "so this")),
        ("Tutorial", ("how to", "tutorial", "step", "guide", "learn", "here's how", "tip", "trick", "way to", "secret")),
        ("Curiosity", ("wait", "until", "this changed", "blew my mind", "discover", "find out", "reveal", "secret")),
        ("Shock", ("omg", "can't believe", "shocking", "crazy", "insane", "unbelievable", "mind-blowing", "wow")),
    ),
    default="Curiosity",
)

FORMAT_TAXONOMY = Taxonomy(
    name="format",
    categories=(
        ("Tutorial", ("how to", "tutorial", "step", "guide", "learn", "convert", "check", "do this", "here's")),
        ("Talking Head", ("let me", "i think", "my opinion", "i believe", "speaking", "saying")),
        ("Slideshow", ("save", "bookmark", "quotes", "list", "things", "tips", "ways")),
        ("Duet", ("duet", "react", "reply")),
        ("Stitch", ("stitch", "responding")),
        ("Trend", ("trend", "viral", "challenge", "dance")),
        ("Storytime", ("story", "happened", "experience", "time when")),
    ),
    default="Talking Head",
)

EMOTION_TAXONOMY = Taxonomy(
    name="emotion",
    categories=(
        ("Curiosity", ("discover", "find out", "learn", "secret", "hidden", "reveal", "what if", "wonder")),
        ("Excitement", ("amazing", "awesome", "love", "best", "incredible", "exciting", "happy", "elevate", "transform")),
        ("Inspiration", ("inspire", "motivated", "dream", "believe", "achieve", "goals", "success", "powerful", "embrace")),
        ("FOMO", ("miss", "limited", "now", "hurry", "before", "last chance", "too many", "space", "got too")),
        ("Humor", ("funny", "lol", "haha", "joke", "laugh", "hilarious", "comedy")),
        ("Shock", ("shock", "can't believe", "omg", "crazy", "insane", "what", "wow")),
        ("Nostalgia", ("remember", "back when", "used to", "old", "memories", "childhood")),
    ),
    default="Curiosity",
)

DEFAULT_CONFIG = ClassifierConfig(hook=HOOK_TAXONOMY, format=FORMAT_TAXONOMY, emotion=EMOTION_TAXONOMY)

HOOK_TYPES = HOOK_TAXONOMY.labels
CONTENT_FORMATS = FORMAT_TAXONOMY.labels
EMOTIONAL_TRIGGERS = EMOTION_TAXONOMY.labels


def score_taxonomy(text: str, taxonomy: Taxonomy) -> dict[str, int]:
    """Count keyword hits per category. ``text`` must already be lower-cased."""
    scores: dict[str, int] = {}
    for label, keywords in taxonomy.categories:
        scores[label] = sum(1 for keyword in keywords if keyword in text)
    return scores


def pick_winner(scores: dict[str, int], taxonomy: Taxonomy) -> str:
    best_label = taxonomy.default
    best_score = 0
    for label in taxonomy.labels:
        if scores.get(label, 0) > best_score:
            best_score = scores[label]
            best_label = label
    return best_label


def detect_hook_type(caption: str, config: ClassifierConfig = DEFAULT_CONFIG) -> str:
    text = (caption or "").lower()
    scores = score_taxonomy(text, config.hook)
    if "?" in text:
        scores[config.question_label] = scores.get(config.question_label, 0) + config.question_mark_bonus
    return pick_winner(scores, config.hook)


def detect_format(caption: str, config: ClassifierConfig = DEFAULT_CONFIG) -> str:
    text = (caption or "").lower()
    return pick_winner(score_taxonomy(text, config.format), config.format)


def detect_emotion(caption: str, config: ClassifierConfig = DEFAULT_CONFIG) -> str:
    text = (caption or "").lower()
    return pick_winner(score_taxonomy(text, config.emotion), config.emotion)


def classify(caption: str | None, config: ClassifierConfig = DEFAULT_CONFIG) -> Classification:
    """Classify a caption along all three taxonomies. Never raises."""
    return Classification(
        hook_type=detect_hook_type(caption or "", config),
        content_format=detect_format(caption or "", config),
        emotional_trigger=detect_emotion(caption or "", config),
    )


_HASHTAG_RE = re.compile(r"#\w+")


def extract_hashtags(caption: str | None) -> list[str]:
    """Case-folded ``#word`` tokens in first-seen order, without duplicates."""
    seen: dict[str, None] = {}
    for tag in _HASHTAG_RE.findall(caption or ""):
        seen.setdefault(tag.lower(), None)
    return list(seen)
