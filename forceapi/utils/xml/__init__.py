import typing as T

from lxml import etree as lxml_etree

UTF8 = "UTF-8"
METADATA_NAMESPACE = "http://soap.sforce.com/2006/04/metadata"


def lxml_parse_string(string: T.Union[str, bytes]) -> lxml_etree._ElementTree:
    """Parse a string using lxml for richer API

    Entities, DTDs and network access are disabled since the input comes off the wire."""

    parser = lxml_etree.XMLParser(
        resolve_entities=False, load_dtd=False, no_network=True
    )
    if isinstance(string, str):
        string = string.encode(UTF8)
    return lxml_etree.ElementTree(lxml_etree.fromstring(string, parser=parser))


def find_all(element, tag: str) -> list:
    """Direct children of ``element`` named ``tag``, ignoring namespaces."""
    return element.xpath("./*[local-name()=$tag]", tag=tag)


def find_descendants(element, tag: str) -> list:
    """Descendants of ``element`` named ``tag`` at any depth, ignoring namespaces."""
    return element.xpath(".//*[local-name()=$tag]", tag=tag)


def child_text(element, tag: str) -> T.Optional[str]:
    """Text of the first direct child named ``tag``, or None when absent or empty."""
    children = find_all(element, tag)
    if children and children[0].text is not None:
        return children[0].text
    return None


def children_as_dict(element, tags: T.Iterable[str]) -> dict:
    """Map each tag present on ``element`` to its text; absent tags are left out."""
    values = {}
    for tag in tags:
        value = child_text(element, tag)
        if value is not None:
            values[tag] = value
    return values
