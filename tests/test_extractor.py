from bs4 import BeautifulSoup

from dndbeyond_mcp.session_manager.extractor import (
    ExtractionTarget,
    Rule,
    attr_of,
    clean_text,
    extract,
    extract_fields,
    first_match,
    href_of,
    int_of,
    matching,
    min_length,
    parse_int,
    without_prefix,
)


def _soup(html):
    return BeautifulSoup(html, "html.parser")


def test_clean_text_collapses_whitespace():
    assert clean_text("  Level 6 \n\t Human  ") == "Level 6 Human"
    assert clean_text(None) == ""


def test_parse_int_takes_first_integer():
    assert parse_int("Level 12") == 12
    assert parse_int("23 / 31") == 23
    assert parse_int("no digits") is None


def test_first_rule_with_a_value_wins():
    soup = _soup("<div><h2 class='alt'>Alt Name</h2><span class='name'>Primary</span></div>")
    chain = (Rule(".missing"), Rule(".name"), Rule("h2.alt"))
    assert first_match(soup, chain) == "Primary"


def test_empty_values_fall_through_to_the_next_rule():
    soup = _soup("<div><span class='name'>   </span><h2>Fallback</h2></div>")
    assert first_match(soup, (Rule(".name"), Rule("h2"))) == "Fallback"


def test_missing_fields_are_omitted():
    soup = _soup("<div><span class='name'>Thorin</span></div>")
    fields = {"name": (Rule(".name"),), "hp": (Rule(".hp", int_of),)}
    assert extract_fields(soup, fields) == {"name": "Thorin"}


def test_transform_errors_are_treated_as_no_value():
    def explode(el):
        raise RuntimeError("bad markup")

    soup = _soup("<div><span class='name'>Thorin</span></div>")
    assert first_match(soup, (Rule(".name", explode), Rule(".name"))) == "Thorin"


def test_nth_selects_by_position():
    soup = _soup("<p class='x'>first</p><p class='x'>Player: Bilbo</p>")
    assert Rule(".x", nth=0).apply(soup) == "first"
    assert Rule(".x", without_prefix("Player:"), nth=1).apply(soup) == "Bilbo"
    assert Rule(".x", nth=5).apply(soup) is None


def test_href_and_matching_build_absolute_urls_and_ids():
    soup = _soup("<a href='/characters/12345/builder'>Sheet</a>")
    assert Rule("a", href_of).apply(soup) == "https://www.dndbeyond.com/characters/12345/builder"
    assert Rule("a", matching(r"/characters/(\d+)")).apply(soup) == "12345"


def test_empty_selector_applies_to_the_card_itself():
    soup = _soup("<div class='info' data-slug='2618887-fireball'></div>")
    card = soup.select_one(".info")
    assert Rule("", attr_of("data-slug")).apply(card) == "2618887-fireball"


def test_min_length_rejects_short_text():
    soup = _soup("<p>short</p><p>this paragraph is comfortably longer than twenty characters</p>")
    assert Rule("p", min_length(20)).apply(soup).startswith("this paragraph")


def test_listing_drops_cards_missing_required_fields():
    target = ExtractionTarget(
        name="cards",
        containers=(".nothing", "li.card"),
        fields={"name": (Rule(".name"),), "id": (Rule("a", matching(r"/(\d+)$")),)},
        required=("name", "id"),
    )
    html = """
    <ul>
      <li class="card"><span class="name">Thorin</span><a href="/characters/1">x</a></li>
      <li class="card"><span class="name">No Link</span></li>
      <li class="card"><a href="/characters/3">nameless</a></li>
    </ul>
    """
    assert extract(html, target) == [{"name": "Thorin", "id": "1"}]


def test_listing_with_no_cards_is_empty_not_an_error():
    target = ExtractionTarget(name="cards", containers=("li.card",), fields={"name": (Rule(".name"),)})
    assert extract("<html><body><p>Nothing here</p></body></html>", target) == []


def test_url_for_fills_template():
    target = ExtractionTarget(name="sheet", fields={}, url="https://example.test/characters/{character_id}")
    assert target.url_for(character_id="42") == "https://example.test/characters/42"
