"""Tests for generated descriptions and image URLs."""

from types import SimpleNamespace

from printbrain.services.descriptions import (
    CLOSING_LINE,
    generate_description,
    image_set,
    image_url,
)


def artwork(**fields):
    values = {
        "title": "Water Lilies",
        "artist": "Claude Monet",
        "style": None,
        "subject": None,
        "era": None,
        "mood": None,
        "palette": None,
    }
    values.update(fields)
    return SimpleNamespace(**values)


class TestGenerateDescription:
    def test_style_and_subject(self):
        text = generate_description(artwork(style="Impressionism", subject="Landscape"))
        assert text == f"An impressionism landscape by Claude Monet. {CLOSING_LINE}"

    def test_style_only(self):
        text = generate_description(artwork(style="Cubism"))
        assert text.startswith("A cubism work by Claude Monet.")

    def test_subject_only(self):
        text = generate_description(artwork(subject="Portrait"))
        assert text.startswith("A portrait by Claude Monet.")

    def test_neither(self):
        assert generate_description(artwork()) == f"A work by Claude Monet. {CLOSING_LINE}"

    def test_full_metadata(self):
        text = generate_description(
            artwork(
                style="Impressionism",
                subject="Landscape",
                era="19th Century",
                mood="Serene",
                palette="Pastel tones",
            )
        )
        assert text == (
            "An impressionism landscape by Claude Monet. "
            "Created during the 19th century period. "
            "This piece evokes a serene atmosphere with pastel tones. "
            f"{CLOSING_LINE}"
        )

    def test_mood_only(self):
        text = generate_description(artwork(style="Baroque", mood="Dramatic"))
        assert "This piece evokes a dramatic atmosphere." in text

    def test_palette_only(self):
        text = generate_description(artwork(style="Baroque", palette="Dark Earth Tones"))
        assert "Featuring dark earth tones." in text

    def test_unknown_era_is_omitted(self):
        assert "period" not in generate_description(artwork(era="Unknown"))

    def test_title_is_not_included(self):
        assert "Water Lilies" not in generate_description(artwork(style="Impressionism"))

    def test_missing_artist(self):
        text = generate_description(artwork(artist=None))
        assert text.startswith("A work by Unknown Artist.")

    def test_deterministic(self):
        asset = artwork(style="Ukiyo-e", subject="Seascape", mood="Calm")
        assert generate_description(asset) == generate_description(asset)


class TestImageUrls:
    def test_image_url(self):
        assert image_url("abc", 400) == "https://lh3.googleusercontent.com/d/abc=s400"

    def test_catalog_image_set(self):
        assert list(image_set("abc")) == ["s400", "s600", "s800"]
        assert image_set("abc")["s600"].endswith("/abc=s600")
