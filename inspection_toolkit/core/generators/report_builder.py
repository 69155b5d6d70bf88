from __future__ import annotations

"""XHTML report generation for inspection documents.

Two report flavours are produced from a read-only Document snapshot:

- ``ReportType.COMPLETE``: summary counts followed by the whole
  topic/item/detail tree with observations, values, media and the
  non-conformities recorded on each detail;
- ``ReportType.NON_CONFORMITIES``: summary counts followed by a flat list of
  every non-conformity with its location (topic > item > detail).

The tree is built with lxml so the output is well-formed XHTML that can be
post-processed (XSLT, PDF converters) or written as-is.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from pathlib import Path
from typing import List, Optional

from lxml import etree as ET

from inspection_toolkit.core.interfaces import ReportType
from inspection_toolkit.core.models import (
    Detail,
    DetailType,
    Document,
    Item,
    Media,
    MediaKind,
    NodePath,
    NonConformity,
    NonConformityStatus,
    Topic,
)

__all__ = [
    "XHTML_NS",
    "ReportType",
    "ReportCounts",
    "NonConformityEntry",
    "count_nodes",
    "collect_non_conformities",
    "build_report",
    "render_report",
    "ReportBuilder",
]

logger = logging.getLogger(__name__)

XHTML_NS = "http://www.w3.org/1999/xhtml"

_UNTITLED = "Vistoria sem título"

_STATUS_LABELS = {
    NonConformityStatus.PENDENTE: "Pendente",
    NonConformityStatus.EM_ANDAMENTO: "Em andamento",
    NonConformityStatus.RESOLVIDA: "Resolvida",
}


@dataclass(frozen=True)
class ReportCounts:
    topics: int = 0
    items: int = 0
    details: int = 0
    non_conformities: int = 0


@dataclass(frozen=True)
class NonConformityEntry:
    """A non-conformity together with the names of the nodes that contain it."""

    path: NodePath
    topic: str
    item: str
    detail: str
    non_conformity: NonConformity

    @property
    def location(self) -> str:
        return " > ".join(part for part in (self.topic, self.item, self.detail) if part)


def count_nodes(document: Document) -> ReportCounts:
    items = [item for topic in document.topics for item in topic.items]
    details = [detail for item in items for detail in item.details]
    return ReportCounts(
        topics=len(document.topics),
        items=len(items),
        details=len(details),
        non_conformities=sum(len(d.non_conformities) for d in details),
    )


def collect_non_conformities(document: Document) -> List[NonConformityEntry]:
    """Return every non-conformity in document order, with its location."""
    entries: List[NonConformityEntry] = []
    for t, topic in enumerate(document.topics):
        for i, item in enumerate(topic.items):
            for d, detail in enumerate(item.details):
                for n, nc in enumerate(detail.non_conformities):
                    entries.append(NonConformityEntry(NodePath(t, i, d, n), topic.name, item.name, detail.name, nc))
    return entries


# --------------------------------------------------------------------------
# Element helpers
# --------------------------------------------------------------------------

def _q(tag: str) -> str:
    return f"{{{XHTML_NS}}}{tag}"


def _el(parent: ET._Element, tag: str, text: Optional[str] = None, **attrs: str) -> ET._Element:
    if "class_" in attrs:
        attrs["class"] = attrs.pop("class_")
    elem = ET.SubElement(parent, _q(tag), {k: v for k, v in attrs.items() if v is not None})
    if text is not None:
        elem.text = text
    return elem


def _labelled(parent: ET._Element, label: str, value: str, class_: str) -> None:
    block = _el(parent, "div", class_=class_)
    _el(block, "span", label, class_="label")
    _el(block, "p", value)


def _format_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def _format_value(detail: Detail) -> Optional[str]:
    value = detail.value
    if value is None or value == "":
        return None
    if detail.type is DetailType.BOOLEAN:
        return "Sim" if value else "Não"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _media_block(parent: ET._Element, media, title: str) -> None:
    if not media:
        return
    block = _el(parent, "div", class_="media")
    _el(block, "h6", title)
    for m in media:
        _media_element(block, m)


def _media_element(parent: ET._Element, media: Media) -> None:
    if media.kind is MediaKind.IMAGE:
        _el(parent, "img", src=media.url, alt=media.id, id=f"media-{media.id}")
    else:
        _el(parent, "a", "Vídeo", href=media.url, id=f"media-{media.id}")


# --------------------------------------------------------------------------
# Sections
# --------------------------------------------------------------------------

def _summary(body: ET._Element, counts: ReportCounts) -> None:
    summary = _el(body, "section", class_="summary")
    for label, value, key in (
        ("Tópicos", counts.topics, "topics"),
        ("Itens", counts.items, "items"),
        ("Detalhes", counts.details, "details"),
        ("Não Conformidades Encontradas", counts.non_conformities, "non_conformities"),
    ):
        block = _el(summary, "div", class_="count", id=f"count-{key}")
        _el(block, "strong", str(value))
        _el(block, "span", label)


def _non_conformity(parent: ET._Element, nc: NonConformity, heading: str, location: Optional[str] = None) -> None:
    section = _el(parent, "section", class_="non-conformity", id=nc.id)
    header = _el(section, "h5", heading)
    _el(header, "span", nc.severity.value, class_="severity")
    _el(header, "span", _STATUS_LABELS[nc.status], class_="status")
    if location:
        _labelled(section, "Localização:", location, "location")
    if nc.description:
        _labelled(section, "Descrição:", nc.description, "description")
    if nc.corrective_action:
        _labelled(section, "Ação Corretiva:", nc.corrective_action, "corrective-action")
    if nc.deadline is not None:
        _labelled(section, "Prazo:", _format_date(nc.deadline), "deadline")
    _media_block(section, nc.media, "Evidências:")


def _detail(parent: ET._Element, detail: Detail, index: int) -> None:
    section = _el(parent, "section", class_="detail")
    _el(section, "h4", detail.name or f"Detalhe {index + 1}")
    if detail.observation:
        _labelled(section, "Observações:", detail.observation, "observation")
    value = _format_value(detail)
    if value is not None:
        _labelled(section, "Valor:", value, "value")
    if detail.damaged:
        _el(section, "span", "Danos Identificados", class_="damaged")
    _media_block(section, detail.media, "Fotos do Detalhe")
    if detail.non_conformities:
        group = _el(section, "div", class_="non-conformities")
        _el(group, "h5", "Não Conformidades do Detalhe")
        for n, nc in enumerate(detail.non_conformities):
            _non_conformity(group, nc, f"Não Conformidade {n + 1}")


def _item(parent: ET._Element, item: Item, index: int) -> None:
    section = _el(parent, "section", class_="item")
    _el(section, "h3", item.name or f"Item {index + 1}")
    if item.description:
        _el(section, "p", item.description, class_="description")
    if item.observation:
        _labelled(section, "Observações:", item.observation, "observation")
    _media_block(section, item.media, "Fotos do Item")
    for d, detail in enumerate(item.details):
        _detail(section, detail, d)


def _topic(parent: ET._Element, topic: Topic, index: int) -> None:
    section = _el(parent, "section", class_="topic")
    _el(section, "h2", f"{index + 1}. {topic.name or f'Tópico {index + 1}'}")
    if topic.description:
        _el(section, "p", topic.description, class_="description")
    if topic.observation:
        _labelled(section, "Observações:", topic.observation, "observation")
    _media_block(section, topic.media, "Fotos do Tópico")
    for i, item in enumerate(topic.items):
        _item(section, item, i)


# --------------------------------------------------------------------------
# Public API
# --------------------------------------------------------------------------

def build_report(document: Document, report_type: ReportType = ReportType.COMPLETE) -> ET._Element:
    """Return the ``<html>`` element of the report for *document*."""
    report_type = ReportType(report_type)
    title = document.title or _UNTITLED
    if report_type is ReportType.NON_CONFORMITIES:
        title = f"{title} - Relatório de Não Conformidades"

    html = ET.Element(_q("html"), nsmap={None: XHTML_NS})
    head = _el(html, "head")
    _el(head, "meta", charset="utf-8")
    _el(head, "title", title)
    body = _el(html, "body", class_=f"report report-{report_type.value}")
    _el(body, "h1", title)
    if document.observation:
        _labelled(body, "Observações:", document.observation, "observation")
    if document.area is not None:
        _labelled(body, "Área:", f"{document.area:g} m²", "area")

    counts = count_nodes(document)
    _summary(body, counts)

    content = _el(body, "main")
    if report_type is ReportType.COMPLETE:
        for t, topic in enumerate(document.topics):
            _topic(content, topic, t)
    else:
        entries = collect_non_conformities(document)
        if not entries:
            _el(content, "p", "Nenhuma não conformidade encontrada.", class_="empty")
        for n, entry in enumerate(entries):
            _non_conformity(content, entry.non_conformity, f"Não Conformidade {n + 1}", entry.location)

    logger.info(
        "Report built: type=%s topics=%d non_conformities=%d",
        report_type.value, counts.topics, counts.non_conformities,
    )
    return html


def render_report(document: Document, report_type: ReportType = ReportType.COMPLETE) -> bytes:
    """Serialize the report as UTF-8 XHTML bytes."""
    return ET.tostring(
        build_report(document, report_type),
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=True,
        doctype="<!DOCTYPE html>",
    )


class ReportBuilder:
    """:class:`~inspection_toolkit.core.interfaces.ReportRenderer` producing XHTML bytes."""

    def render(self, document: Document, report_type: ReportType) -> bytes:
        return render_report(document, report_type)

    def write(self, document: Document, report_type: ReportType, path) -> Path:
        """Render the report and write it to *path*; return the path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.render(document, report_type))
        logger.info("Report written to %s", path)
        return path
