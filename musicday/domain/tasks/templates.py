"""Print and order task templates generated for every event"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TaskTemplate:
    template_id: str
    name: str
    task_type: str
    completion_type: str  # monetary | checkbox | submit_only
    offset_days: int
    description: str = ""
    creates_go_id: bool = False
    creates_shipping: bool = False
    r2_file: Optional[str] = None


PAPER_ORDER_TEMPLATES: tuple[TaskTemplate, ...] = (
    TaskTemplate(
        template_id="poster_letter",
        name="Poster & Elternbrief",
        task_type="paper_order",
        completion_type="submit_only",
        offset_days=-58,
        description="Poster und Elternbrief an die Schule senden",
        r2_file="poster_letter.pdf",
    ),
    TaskTemplate(
        template_id="flyer1",
        name="Flyer 1",
        task_type="paper_order",
        completion_type="monetary",
        offset_days=-42,
        description="Erste Flyer-Welle drucken lassen",
        creates_go_id=True,
        creates_shipping=True,
        r2_file="flyer1.pdf",
    ),
    TaskTemplate(
        template_id="flyer2",
        name="Flyer 2",
        task_type="paper_order",
        completion_type="monetary",
        offset_days=-22,
        description="Zweite Flyer-Welle drucken lassen",
        creates_go_id=True,
        creates_shipping=True,
        r2_file="flyer2.pdf",
    ),
    TaskTemplate(
        template_id="flyer3",
        name="Flyer 3",
        task_type="paper_order",
        completion_type="monetary",
        offset_days=-14,
        description="Dritte Flyer-Welle drucken lassen",
        creates_go_id=True,
        creates_shipping=True,
        r2_file="flyer3.pdf",
    ),
    TaskTemplate(
        template_id="minicard",
        name="Minicards",
        task_type="paper_order",
        completion_type="monetary",
        offset_days=1,
        description="Minicards nach dem Event bestellen",
        r2_file="minicard.pdf",
    ),
)

SHIPPING_TEMPLATE = TaskTemplate(
    template_id="shipping",
    name="Ship Order To School",
    task_type="shipping",
    completion_type="checkbox",
    offset_days=0,
    description="Gedruckte Materialien an die Schule versenden",
)

TEMPLATES_BY_ID = {t.template_id: t for t in PAPER_ORDER_TEMPLATES + (SHIPPING_TEMPLATE,)}


def get_task_template(template_id: str) -> Optional[TaskTemplate]:
    return TEMPLATES_BY_ID.get(template_id)
