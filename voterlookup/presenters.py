"""
Presentation of search results.

JSON payloads for the web front end and plain-text result lists for the
chat bot. Records arrive already ranked; nothing here reorders them.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from .config import get_config
from .models import VoterDetails, VoterRecord

CHAT_LABELS: Dict[str, Dict[str, str]] = {
    "english": {
        "header": "Voters found in Ward {ward}\n",
        "age": "Age",
        "gender": "Gender",
        "footer": "\nReply with the number to select",
    },
    "hindi": {
        "header": "वार्ड {ward} में पाए गए मतदाता\n",
        "age": "आयु",
        "gender": "लिंग",
        "footer": "\nक्रमांक उत्तर के रूप में भेजें",
    },
    "marathi": {
        "header": "प्रभाग {ward} मध्ये आढळलेले मतदार\n",
        "age": "वय",
        "gender": "लिंग",
        "footer": "\nक्रमांक उत्तर म्हणून पाठवा",
    },
}


def _blank_to_none(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


def format_match(record: VoterRecord, position: int) -> Dict[str, Any]:
    """One entry of the ``matches`` list; ``id`` is the 1-based position."""
    return {
        "id": position,
        "name": record.full_name,
        "age": _blank_to_none(record.age),
        "epic": record.epic_number,
        "ward": record.part_no,
        "sr_no": record.sr_no,
        "address": _blank_to_none(record.address),
        "house_number": _blank_to_none(record.house_number),
        "gender": _blank_to_none(record.gender),
        "pincode": _blank_to_none(record.pincode),
    }


def format_search_response(records: Sequence[VoterRecord]) -> Dict[str, Any]:
    """``{success, matches, count}`` payload for the search endpoint."""
    matches = [format_match(record, i) for i, record in enumerate(records, start=1)]
    return {
        "success": True,
        "matches": matches,
        "count": len(matches),
    }


def format_voter_details(details: VoterDetails) -> Dict[str, Any]:
    """Payload for the voter slip."""
    record = details.record
    return {
        "success": True,
        "voter": {
            "epic": record.epic_number,
            "name": record.full_name,
            "age": _blank_to_none(record.age),
            "ward": str(details.ward),
            "sr_no": _blank_to_none(record.sr_no),
            "partBooth": f"{record.part_no}",
            "address": _blank_to_none(record.address),
            "house_number": _blank_to_none(record.house_number),
            "pincode": _blank_to_none(record.pincode),
            "gender": _blank_to_none(record.gender),
            "ac_no": _blank_to_none(details.ac_no),
            "relation_name": _blank_to_none(record.relation_name),
            "relation_type": _blank_to_none(details.relation_type),
            "pollingStation": details.polling_station,
            "pollingAddress": details.polling_address,
        },
    }


def format_results_message(
    records: Sequence[VoterRecord],
    ward: int,
    language: Optional[str] = "english",
    limit: Optional[int] = None,
) -> str:
    """
    Numbered result list for a chat reply.

    Shows at most ``limit`` records (default SEARCH_CHAT_RESULTS). Unknown
    languages fall back to English.
    """
    if limit is None:
        limit = get_config().search.chat_results
    labels = CHAT_LABELS.get((language or "english").lower(), CHAT_LABELS["english"])
    lines = [labels["header"].format(ward=ward)]
    for i, record in enumerate(records[:limit], start=1):
        lines.append(
            f"{i}. {record.full_name} | {labels['age']}: {record.age} | "
            f"{labels['gender']}: {record.gender}"
        )
    lines.append(labels["footer"])
    return "\n".join(lines)
