from trendradar.services.classifier import (
    CONTENT_FORMATS,
    DEFAULT_CONFIG,
    EMOTIONAL_TRIGGERS,
    HOOK_TYPES,
    ClassifierConfig,
    Taxonomy,
    classify,
    detect_hook_type,
    extract_hashtags,
    score_taxonomy,
)


def test_empty_caption_falls_back_to_defaults():
    result = classify("")
    assert result.hook_type == "Curiosity"
    assert result.content_format == "Talking Head"
    assert result.emotional_trigger == "Curiosity"
    assert classify(None) == result


def test_lone_question_mark_is_question_hook():
    assert classify("?").hook_type == "Question"


def test_classification_is_deterministic():
    caption = "How to learn the secret trick nobody talks about?"
    assert classify(caption) == classify(caption)


def test_tutorial_caption():
    result = classify("How to learn python")
    assert result.hook_type == "Tutorial"
    assert result.content_format == "Tutorial"
    assert result.emotional_trigger == "Curiosity"


def test_matching_is_case_insensitive():
    result = classify("OMG this is CRAZY")
    assert result.hook_type == "Shock"
    assert result.emotional_trigger == "Shock"


def test_controversial_hook():
    assert detect_hook_type("Unpopular opinion: hot take") == "Controversial"


def test_overlapping_keywords_all_count():
    # "secret" belongs to both Tutorial and Curiosity; the tie goes to the first declared
    scores = score_taxonomy("the secret", DEFAULT_CONFIG.hook)
    assert scores["Tutorial"] == 1
    assert scores["Curiosity"] == 1
    assert detect_hook_type("the secret") == "Tutorial"


def test_question_mark_bonus_outweighs_single_keyword():
    # Shock gets one hit, Question gets the "?" keyword plus the bonus
    assert detect_hook_type("wow?") == "Question"


def test_taxonomy_enumerations():
    assert HOOK_TYPES == ("Question", "Controversial", "Story", "Tutorial", "Curiosity", "Shock")
    assert CONTENT_FORMATS == ("Tutorial", "Talking Head", "Slideshow", "Duet", "Stitch", "Trend", "Storytime")
    assert EMOTIONAL_TRIGGERS == ("Curiosity", "Excitement", "Inspiration", "FOMO", "Humor", "Shock", "Nostalgia")


def test_custom_config_is_used_instead_of_builtin_tables():
    hook = Taxonomy(name="hook", categories=(("Alpha", ("zebra",)), ("Beta", ("zebra",))), default="Gamma")
    config = ClassifierConfig(hook=hook, format=DEFAULT_CONFIG.format, emotion=DEFAULT_CONFIG.emotion)

    assert detect_hook_type("a zebra", config) == "Alpha"
    assert detect_hook_type("nothing here", config) == "Gamma"
    # no Question category in this taxonomy, the bonus lands on an unknown label and is ignored
    assert detect_hook_type("zebra?", config) == "Alpha"


def test_extract_hashtags_folds_case_and_dedupes():
    assert extract_hashtags("Dinner #Food #food and #Travel_Tips!") == ["#food", "#travel_tips"]
    assert extract_hashtags(None) == []
