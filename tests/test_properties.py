"""Property-based tests using Hypothesis.

Verifies invariants of frontmatter stripping, filter ranking, text
truncation and config validation. Each test runs 50 examples in CI, 200 in
dev.

Run:
    pytest tests/test_properties.py -v
    pytest tests/test_properties.py -v --hypothesis-seed=0  # reproducible
"""

from __future__ import annotations

from pathlib import Path

import hypothesis.strategies as st
from hypothesis import given, settings

from docshelf.config import _dict_to_config
from docshelf.listing import FUZZY_SCORE_CUTOFF, filter_score, rank_documents
from docshelf.models import MAX_WIDTH, Document
from docshelf.textutil import remove_frontmatter
from docshelf.theme import truncate_text

# ── Hypothesis profiles ─────────────────────────────────────────────
settings.register_profile("ci", max_examples=50, deadline=None)
settings.register_profile("dev", max_examples=200, deadline=None)
settings.load_profile("ci")

# ── Custom strategies ────────────────────────────────────────────────

# Metadata lines that can never be mistaken for a delimiter.
_meta_lines = st.lists(
    st.from_regex(r"[a-z]{1,8}: [A-Za-z0-9 ]{0,20}", fullmatch=True),
    min_size=0,
    max_size=5,
)

# Bodies that do not start with whitespace-only lines, so the blank-line
# swallowing after the closing delimiter cannot eat into them.
_bodies = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",), blacklist_characters="\r"),
    max_size=200,
).filter(lambda s: not s or (not s[0].isspace() and not s.startswith("---")))


@st.composite
def documents(draw: st.DrawFn) -> Document:
    name = draw(st.from_regex(r"[a-z]{1,10}(/[a-z]{1,10}){0,2}\.md", fullmatch=True))
    doc = Document(local_path=Path("/docs") / name, note=name)
    doc.build_filter_value()
    return doc


class TestFrontmatterProperties:
    @given(meta=_meta_lines, body=_bodies)
    def test_round_trip_recovers_body(self, meta: list[str], body: str):
        block = "---\n" + "".join(f"{line}\n" for line in meta) + "---\n"
        content = (block + body).encode("utf-8")
        assert remove_frontmatter(content) == body.encode("utf-8")

    @given(body=_bodies)
    def test_body_without_frontmatter_unchanged(self, body: str):
        content = body.encode("utf-8")
        assert remove_frontmatter(content) == content

    @given(data=st.binary(max_size=300))
    def test_output_is_suffix_of_input(self, data: bytes):
        assert data.endswith(remove_frontmatter(data))


class TestRankingProperties:
    @given(query=st.text(min_size=1, max_size=10), docs=st.lists(documents(), max_size=15))
    def test_results_are_subset_above_cutoff(self, query: str, docs: list[Document]):
        ranked = rank_documents(query, docs)
        assert all(doc in docs for doc in ranked)
        lowered = query.lower()
        assert all(filter_score(lowered, d.filter_value) >= FUZZY_SCORE_CUTOFF for d in ranked)

    @given(query=st.text(min_size=1, max_size=10), docs=st.lists(documents(), max_size=15))
    def test_results_sorted_by_descending_score(self, query: str, docs: list[Document]):
        ranked = rank_documents(query, docs)
        scores = [filter_score(query.lower(), d.filter_value) for d in ranked]
        assert scores == sorted(scores, reverse=True)

    @given(query=st.text(max_size=10), docs=st.lists(documents(), max_size=15))
    def test_ranking_does_not_mutate_documents(self, query: str, docs: list[Document]):
        before = [(d.note, d.filter_value) for d in docs]
        rank_documents(query, docs)
        assert [(d.note, d.filter_value) for d in docs] == before


class TestTruncateProperties:
    @given(text=st.text(max_size=100), max_len=st.integers(min_value=0, max_value=120))
    def test_never_exceeds_max_len(self, text: str, max_len: int):
        assert len(truncate_text(text, max_len)) <= max_len


class TestConfigProperties:
    @given(
        data=st.dictionaries(
            st.sampled_from(
                ["style", "width", "all", "line_numbers", "mouse", "render", "markdown_extensions"]
            ),
            st.one_of(
                st.none(),
                st.booleans(),
                st.integers(min_value=-1000, max_value=1000),
                st.text(max_size=10),
                st.lists(st.text(max_size=5), max_size=3),
            ),
        )
    )
    def test_dict_to_config_always_valid(self, data: dict):
        config = _dict_to_config(data)
        assert 0 <= config.width <= MAX_WIDTH
        assert isinstance(config.show_all_files, bool)
        assert isinstance(config.glamour_enabled, bool)
        assert isinstance(config.style, str) and config.style
        assert config.markdown_extensions
