#!/usr/bin/env python3
"""
Tests for the structural HTML diff.
"""

from bs4 import BeautifulSoup

from waymark.core.state.html_diff import flatten_html, html_diff

PAGE = (
    '<body><div id="list"><p>First item here</p></div>'
    '<footer><p>Footer text here</p></footer></body>'
)


def test_identical_pages():
    result = html_diff(PAGE, PAGE)

    assert not result.has_changes
    assert result.similarity == 100
    assert result.summary == 'No changes detected'
    assert result.subtree is None


def test_single_addition_subtree_is_the_new_element():
    current = PAGE.replace('</p></div>', '</p><p>Second item here</p></div>')

    result = html_diff(PAGE, current)

    assert result.added == ['TEXT:Second item here']
    assert result.removed == []
    assert result.similarity == 67
    assert result.summary == '67% similar, 1 addition'
    assert result.subtree == '<p>Second item here</p>'


def test_subtree_is_lowest_common_ancestor_of_additions():
    current = PAGE.replace(
        '</p></div>', '</p><p>Second item here</p><button>Add more</button></div>'
    )

    result = html_diff(PAGE, current)

    assert result.added == ['TEXT:Second item here', 'BUTTON:Add more']
    assert result.subtree.startswith('<div id="list">')
    assert 'Footer' not in result.subtree


def test_removal_subtree_comes_from_previous_page():
    current = '<body><div id="list"></div><footer><p>Footer text here</p></footer></body>'

    result = html_diff(PAGE, current)

    assert result.added == []
    assert result.removed == ['TEXT:First item here']
    assert result.summary == '50% similar, 1 removal'
    assert result.subtree == '<p>First item here</p>'


def test_short_text_is_ignored():
    result = html_diff('<body><p>OK</p></body>', '<body><p>No</p></body>')

    assert not result.has_changes


def test_missing_documents():
    assert not html_diff(None, None).has_changes


def test_flatten_collapses_interactive_elements():
    html = (
        '<div><p>Welcome aboard</p><script>var x = 1;</script>'
        '<!-- a long comment --><input placeholder="Search">'
        '<button><span>Go</span> now</button><a href="/help"></a></div>'
    )

    lines = [line for line, _ in flatten_html(BeautifulSoup(html, 'html.parser'))]

    assert lines == ['TEXT:Welcome aboard', 'INPUT:Search', 'BUTTON:Go now', 'A:/help']


def test_role_marks_element_interactive():
    html = '<div role="tab">Billing details</div>'

    lines = [line for line, _ in flatten_html(BeautifulSoup(html, 'html.parser'))]

    assert lines == ['DIV:Billing details']
