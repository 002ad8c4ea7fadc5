"""
Plain-text extraction from captured HTML fragments.

The extracted text is what Html records show in listings and what
search matches against; the markup itself is stored untouched.
"""

from bs4 import BeautifulSoup


def extract_text(markup: str) -> str:
    """Return the visible text of an HTML fragment on one line."""
    soup = BeautifulSoup(markup, "html.parser")

    # Remove script and style elements
    for element in soup(["script", "style"]):
        element.decompose()

    # Adjacent elements are separated; whitespace runs collapse to one space
    return " ".join(soup.get_text(" ").split())
