"""DOM writers for every fill strategy plus the sequential fill loop."""

from .choice import fill_checkbox, fill_radio
from .conditional import CONDITIONAL_PATTERNS, ConditionalPattern, get_conditional_pattern, reveals_dependents
from .date_input import fill_date
from .executor import FILL_ORDER, FillExecutor, fill_field, fill_form, skip_reason, sort_for_fill
from .files import upload_file
from .multiselect import fill_multiselect
from .repeatable import expand_sections, group_by_row
from .rich_text import fill_rich_text
from .select import fill_select
from .text import TextFillOutcome, fill_text
from .typeahead import TypeaheadConfig, fill_typeahead

__all__ = [
    "CONDITIONAL_PATTERNS",
    "ConditionalPattern",
    "FILL_ORDER",
    "FillExecutor",
    "TextFillOutcome",
    "TypeaheadConfig",
    "expand_sections",
    "fill_checkbox",
    "fill_date",
    "fill_field",
    "fill_form",
    "fill_multiselect",
    "fill_radio",
    "fill_rich_text",
    "fill_select",
    "fill_text",
    "fill_typeahead",
    "get_conditional_pattern",
    "group_by_row",
    "reveals_dependents",
    "skip_reason",
    "sort_for_fill",
    "upload_file",
]
