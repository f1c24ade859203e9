"""Closed vocabularies for artwork classification."""

STYLES = [
    "Impressionism", "Post-Impressionism", "Realism", "Romanticism", "Baroque",
    "Renaissance", "Art Nouveau", "Art Deco", "Expressionism", "Abstract", "Cubism",
    "Surrealism", "Symbolism", "Minimalism", "Ukiyo-e", "Folk Art", "Gothic",
    "Neoclassicism", "Rococo", "Fauvism", "Pointillism", "Modernism", "Naturalism",
    "Academic Art", "Pre-Raphaelite", "Orientalism", "Hudson River School",
    "Constructivism", "Pop Art", "Naive Art", "Mannerism", "Tonalism", "Luminism",
    "Illustration", "Sketch", "Drawing", "Watercolor", "Engraving", "Lithograph",
    "Photography", "Mixed Media", "Other",
]

MOODS = [
    "Serene", "Dramatic", "Melancholic", "Joyful", "Mysterious", "Romantic", "Dark",
    "Whimsical", "Contemplative", "Vibrant", "Peaceful", "Somber", "Ethereal",
    "Nostalgic", "Powerful", "Playful", "Elegant", "Raw", "Spiritual", "Warm",
]

SUBJECTS = [
    "Landscape", "Portrait", "Still Life", "Seascape", "Cityscape", "Abstract",
    "Mythology", "Religious", "Historical", "Botanical", "Animal", "Figure Study",
    "Interior", "Architecture", "Battle Scene", "Genre Scene", "Allegory",
    "Self-Portrait", "Nude", "Fantasy", "Nature", "Maritime", "Rural Life",
    "Court Life", "Street Scene", "Garden", "Winter Scene", "Night Scene", "Celestial",
    "Map", "Fashion", "Children", "Dance", "Music", "Literature", "Science", "Travel",
    "Food & Drink", "Geometric", "Typography", "Decorative", "Textile", "Pattern",
    "Satirical", "Political",
]

ERAS = [
    "Ancient", "Medieval", "15th Century", "16th Century", "17th Century",
    "18th Century", "Early 19th Century", "Late 19th Century", "Early 20th Century",
    "Mid 20th Century", "Late 20th Century", "Contemporary", "Unknown",
]

PALETTES = [
    "Warm Earth Tones", "Cool Blues", "Vibrant Multi-Color", "Muted Pastels",
    "Monochrome", "Gold & Ochre", "Dark & Moody", "Light & Airy", "Rich Jewel Tones",
    "Black & White", "Sepia", "Green & Natural", "Red & Crimson", "Blue & White",
    "Sunset Colors", "Neutral Tones",
]

VOCABULARIES = {
    "style": STYLES,
    "mood": MOODS,
    "subject": SUBJECTS,
    "era": ERAS,
    "palette": PALETTES,
}

CONTINENTS = ["Europe", "Asia", "North America", "South America", "Africa", "Oceania"]

COUNTRIES = [
    "France", "Italy", "Netherlands", "Spain", "Germany", "England", "United Kingdom",
    "Belgium", "Austria", "Switzerland", "Russia", "Norway", "Sweden", "Denmark",
    "Poland", "Greece", "Portugal", "Ireland", "Scotland", "Japan", "China", "India",
    "Persia", "Turkey", "Egypt", "Morocco", "United States", "America", "Mexico",
    "Canada", "Brazil", "Peru", "Argentina", "Australia", "New Zealand",
]


def canonical(field: str, value):
    """Map a model-produced value onto the vocabulary's spelling.

    Unknown values are returned stripped but otherwise unchanged.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    cleaned = value.strip()
    for term in VOCABULARIES.get(field, []):
        if term.lower() == cleaned.lower():
            return term
    return cleaned
