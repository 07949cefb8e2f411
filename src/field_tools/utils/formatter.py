"""Channel-specific rendering of field check results"""

from datetime import datetime

from field_tools.config.constants import (
    ErrorCode,
    QueryType,
    USSD_MAX_LENGTH,
    USSD_MENU,
    USSD_MENU_LABELS,
    USSD_MENU_TITLE,
    VehicleStatus,
)
from field_tools.models.results import (
    BackgroundCheckResult,
    FieldCheckResult,
    MissingCheckResult,
    QueryStatistics,
    RateLimitResult,
    VehicleCheckResult,
    WantedCheckResult,
)

DIVIDER = "━━━━━━━━━━━━━━━━━━━━"
RESTART_HINT = "Reply with any message to start a new search."


def mask_phone(phone: str) -> str:
    """Keep only the last 4 digits for logs"""
    if len(phone) <= 4:
        return "****"
    return f"{'*' * (len(phone) - 4)}{phone[-4:]}"


def reset_label(reset_at: datetime) -> str:
    """'midnight' or the wall-clock reset hour"""
    if reset_at.hour == 0 and reset_at.minute == 0:
        return "midnight"
    return reset_at.strftime("%H:%M")


# ==================== USSD ====================

def ussd_truncate(text: str) -> str:
    """Cap a response to one USSD screen"""
    if len(text) <= USSD_MAX_LENGTH:
        return text
    return text[: USSD_MAX_LENGTH - 3] + "..."


def con(text: str) -> str:
    """Non-terminal USSD prompt"""
    return ussd_truncate(f"CON {text}")


def end(text: str) -> str:
    """Terminal USSD response"""
    return ussd_truncate(f"END {text}")


def ussd_main_menu() -> str:
    lines = [USSD_MENU_TITLE]
    lines.extend(f"{key}. {USSD_MENU_LABELS[query_type]}" for key, query_type in USSD_MENU.items())
    return con("\n".join(lines))


def ussd_rate_limited(rate_limit: RateLimitResult) -> str:
    return end(f"Daily limit reached ({rate_limit.limit} queries).\nResets at {reset_label(rate_limit.reset_at)}.")


def render_ussd(result: FieldCheckResult, search_term: str | None = None) -> str:
    """
    Render a dispatcher result as a terminal USSD response

    The most important fields come first so truncation only drops detail.

    Args:
        result: Dispatcher result
        search_term: Normalised search term, echoed on "not found"

    Returns:
        "END ..." text
    """
    if not result.success:
        if result.error_code == ErrorCode.RATE_LIMITED and result.rate_limit:
            return ussd_rate_limited(result.rate_limit)
        return end(f"{result.error or 'Error performing check'}. Please try again.")

    data = result.data
    match result.check_type:
        case QueryType.WANTED:
            return end(_ussd_wanted(data, search_term))
        case QueryType.MISSING:
            return end(_ussd_missing(data, search_term))
        case QueryType.BACKGROUND:
            return end(_ussd_background(data, search_term))
        case QueryType.VEHICLE:
            return end(_ussd_vehicle(data))
        case QueryType.STATS:
            return end(_ussd_stats(data))
    return end("Invalid feature")


def _ussd_wanted(data: WantedCheckResult, nin: str | None) -> str:
    if not data.found:
        return f"No record found for NIN: {nin}"
    if not data.is_wanted:
        return f"No active warrants\nName: {data.person.name}"
    details = data.wanted_details
    return (
        "WANTED PERSON\n"
        f"Name: {data.person.name}\n"
        f"Danger: {details.danger_level.value.upper()}\n"
        f"Warrant: {details.warrant_number or 'N/A'}\n"
        f"Charges: {', '.join(details.charges) or 'N/A'}"
    )


def _ussd_missing(data: MissingCheckResult, nin: str | None) -> str:
    if not data.found:
        return f"No record found for NIN: {nin}"
    if not data.is_missing:
        return f"Not reported missing\nName: {data.person.name}"
    return (
        "MISSING/DECEASED\n"
        f"Name: {data.person.name}\n"
        f"{data.missing_details.description}"
    )


def _ussd_background(data: BackgroundCheckResult, nin: str | None) -> str:
    if not data.found:
        return f"No record found for NIN: {nin}"
    if not data.has_record:
        return f"CLEAR\nName: {data.person.name}\nNo criminal record"
    details = data.record_details
    return (
        "RECORD EXISTS\n"
        f"Name: {data.person.name}\n"
        f"Risk: {details.risk_level.value.upper()}\n"
        f"Cases: {details.case_count}\n"
        f"Wanted: {'YES' if details.is_wanted else 'NO'}\n"
        f"Missing: {'YES' if details.is_missing else 'NO'}"
    )


def _ussd_vehicle(data: VehicleCheckResult) -> str:
    if not data.found:
        return f"No record found for plate: {data.plate}"

    vehicle = data.vehicle
    body = (
        f"Plate: {vehicle.license_plate}\n"
        f"Make: {vehicle.make or 'N/A'}\n"
        f"Model: {vehicle.model or 'N/A'}\n"
        f"Color: {vehicle.color or 'N/A'}"
    )
    if data.status == VehicleStatus.STOLEN:
        stolen = data.stolen_details
        when = stolen.stolen_date.strftime("%Y-%m-%d") if stolen.stolen_date else "Yes"
        return f"STOLEN VEHICLE\n{body}\nStolen: {when} ({stolen.days_stolen} days)"
    if data.status == VehicleStatus.IMPOUNDED:
        return f"IMPOUNDED VEHICLE\n{body}"
    if data.status == VehicleStatus.RECOVERED:
        return f"RECOVERED VEHICLE\n{body}"
    return f"Not reported stolen\n{body}"


def _ussd_stats(data: QueryStatistics) -> str:
    return (
        "Your Field Stats\n"
        f"Today: {data.today}\n"
        f"This week: {data.this_week}\n"
        f"This month: {data.this_month}\n"
        f"Total: {data.total}\n"
        f"Success rate: {data.success_rate:.1f}%"
    )


# ==================== WhatsApp ====================

SEARCH_PROMPTS = {
    QueryType.WANTED: "🚨 *Wanted Person Check*\n\nEnter the National Identification Number (NIN) to search:",
    QueryType.MISSING: "🔎 *Missing Person Check*\n\nEnter the National Identification Number (NIN) to search:",
    QueryType.BACKGROUND: "📋 *Background Check*\n\nEnter the National Identification Number (NIN) to search:",
    QueryType.VEHICLE: "🚗 *Vehicle Check*\n\nEnter the Vehicle Registration Number (VRN) to search:",
}

PIN_PROMPT = "🔐 *Authentication Required*\n\nPlease enter your 4-digit Quick PIN:"
INVALID_PIN_FORMAT = "Invalid PIN format. Please enter your 4-digit Quick PIN:"
INVALID_PIN = "❌ Invalid PIN. Please try again:"
TOO_MANY_ATTEMPTS = "🔒 Too many failed PIN attempts. Please start over."
NOT_AUTHORISED = (
    "❌ *Not Authorised*\n\n"
    "This phone number is not authorised for CRMS field access.\n\n"
    "Please contact your station commander."
)
SESSION_EXPIRED = "⌛ Session expired. Please start again."
SESSION_RESTARTED = "⚠️ That step is no longer valid. Starting over."
EMPTY_SEARCH = "Please enter a search term, or reply *0* to return to the menu."


def whatsapp_main_menu(to: str, footer: str) -> dict:
    """Interactive list payload for the main menu"""
    return {
        "to": to,
        "type": "list",
        "body": {"text": "*CRMS Field Tools*\n\nWelcome, Officer! Select a check type below:"},
        "footer": {"text": footer},
        "action": {
            "label": "Select a check",
            "list": {
                "label": "Select a check type below:",
                "sections": [
                    {
                        "title": "Person Checks",
                        "rows": [
                            {"id": QueryType.WANTED.value, "title": "🚨 Wanted Person",
                             "description": "Check if person has active warrant"},
                            {"id": QueryType.MISSING.value, "title": "🔎 Missing Person",
                             "description": "Check missing/deceased status"},
                            {"id": QueryType.BACKGROUND.value, "title": "📋 Background Check",
                             "description": "Full criminal record check"},
                        ],
                    },
                    {
                        "title": "Other checks",
                        "rows": [
                            {"id": QueryType.VEHICLE.value, "title": "🚗 Vehicle Check",
                             "description": "Check stolen vehicle status"},
                            {"id": QueryType.STATS.value, "title": "📊 My Statistics",
                             "description": "View your query statistics"},
                        ],
                    },
                ],
            },
        },
    }


def whatsapp_rate_limited(rate_limit: RateLimitResult) -> str:
    return (
        f"⛔ Daily query limit reached ({rate_limit.limit} queries). "
        f"Resets at {reset_label(rate_limit.reset_at)}."
    )


def whatsapp_error(message: str) -> str:
    return f"❌ *ERROR*\n{DIVIDER}\n\n{message}\n\n_Please try again._\n\n{RESTART_HINT}"


def render_whatsapp(result: FieldCheckResult, search_term: str | None = None) -> str:
    """
    Render a dispatcher result as a WhatsApp message

    Args:
        result: Dispatcher result
        search_term: Normalised search term, echoed when nothing matched

    Returns:
        Markdown text
    """
    if not result.success:
        if result.error_code == ErrorCode.RATE_LIMITED and result.rate_limit:
            return whatsapp_rate_limited(result.rate_limit)
        return whatsapp_error(result.error or "Error performing check")

    data = result.data
    match result.check_type:
        case QueryType.WANTED:
            return _wa_wanted(data, search_term)
        case QueryType.MISSING:
            return _wa_missing(data, search_term)
        case QueryType.BACKGROUND:
            return _wa_background(data, search_term)
        case QueryType.VEHICLE:
            return _wa_vehicle(data)
        case QueryType.STATS:
            return _wa_stats(data)
    return whatsapp_error("Unknown check type")


def _wa_not_found(label: str, value: str | None) -> str:
    return f"ℹ️ *NO RECORD FOUND*\n{DIVIDER}\n\nNo record found for {label}: {value}\n\n{RESTART_HINT}"


def _wa_wanted(data: WantedCheckResult, nin: str | None) -> str:
    if not data.found:
        return _wa_not_found("NIN", nin)
    person = data.person
    if not data.is_wanted:
        return (
            f"✅ *NO ACTIVE WARRANTS*\n{DIVIDER}\n\n"
            f"👤 *Name:* {person.name}\n🆔 *NIN:* {person.nin}\n\n"
            f"_No active warrant found._\n\n{RESTART_HINT}"
        )

    details = data.wanted_details
    charges = "\n".join(f"• {c}" for c in details.charges) or "• N/A"
    lines = [
        f"⚠️ *WANTED PERSON ALERT*\n{DIVIDER}\n",
        f"👤 *Name:* {person.name}",
        f"🆔 *NIN:* {person.nin}\n",
        f"⚖️ *Charges:*\n{charges}\n",
        f"🔴 *Danger Level:* {details.danger_level.value.upper()}",
        f"📜 *Warrant:* {details.warrant_number or 'N/A'}",
    ]
    if details.last_seen_location:
        lines.append(f"📍 *Last Seen:* {details.last_seen_location}")
    if details.reward_amount:
        lines.append(f"💰 *Reward:* {details.reward_amount}")
    lines.append(f"\n{DIVIDER}\n_Exercise extreme caution. Contact dispatch immediately._\n\n{RESTART_HINT}")
    return "\n".join(lines)


def _wa_missing(data: MissingCheckResult, nin: str | None) -> str:
    if not data.found:
        return _wa_not_found("NIN", nin)
    person = data.person
    if not data.is_missing:
        return (
            f"✅ *NOT REPORTED MISSING*\n{DIVIDER}\n\n"
            f"👤 *Name:* {person.name}\n🆔 *NIN:* {person.nin}\n\n{RESTART_HINT}"
        )
    details = data.missing_details
    return (
        f"⚠️ *MISSING PERSON ALERT*\n{DIVIDER}\n\n"
        f"👤 *Name:* {person.name}\n🆔 *NIN:* {person.nin}\n\n"
        f"📌 *Status:* {details.status}\n"
        f"ℹ️ {details.description}\n"
        f"📞 {details.contact}\n\n{RESTART_HINT}"
    )


def _wa_background(data: BackgroundCheckResult, nin: str | None) -> str:
    if not data.found:
        return _wa_not_found("NIN", nin)
    person = data.person
    if not data.has_record:
        return (
            f"✅ *CLEAR*\n{DIVIDER}\n\n"
            f"👤 *Name:* {person.name}\n🆔 *NIN:* {person.nin}\n\n"
            f"_No criminal record found._\n\n{RESTART_HINT}"
        )
    details = data.record_details
    return (
        f"⚠️ *RECORD EXISTS*\n{DIVIDER}\n\n"
        f"👤 *Name:* {person.name}\n🆔 *NIN:* {person.nin}\n\n"
        f"🔴 *Risk Level:* {details.risk_level.value.upper()}\n"
        f"📁 *Cases:* {details.case_count}\n"
        f"🚨 *Wanted:* {'YES' if details.is_wanted else 'NO'}\n"
        f"🔎 *Missing:* {'YES' if details.is_missing else 'NO'}\n\n{RESTART_HINT}"
    )


def _wa_vehicle(data: VehicleCheckResult) -> str:
    if not data.found:
        return _wa_not_found("plate", data.plate)

    vehicle = data.vehicle
    body = f"🚗 *Vehicle:* {vehicle.description}\n🆔 *Plate:* {vehicle.license_plate}"
    if vehicle.year:
        body += f"\n📅 *Year:* {vehicle.year}"

    if data.status == VehicleStatus.STOLEN:
        stolen = data.stolen_details
        when = stolen.stolen_date.strftime("%Y-%m-%d") if stolen.stolen_date else "Unknown"
        return (
            f"⚠️ *STOLEN VEHICLE ALERT*\n{DIVIDER}\n\n{body}\n\n"
            f"📆 *Stolen:* {when} ({stolen.days_stolen} days ago)\n"
            f"👮 *Reported by:* {stolen.reported_by or 'N/A'}\n\n"
            f"{DIVIDER}\n_Do not approach alone. Contact dispatch immediately._\n\n{RESTART_HINT}"
        )
    titles = {
        VehicleStatus.IMPOUNDED: "🚧 *IMPOUNDED VEHICLE*",
        VehicleStatus.RECOVERED: "✅ *RECOVERED VEHICLE*",
    }
    title = titles.get(data.status, "✅ *NOT REPORTED STOLEN*")
    return f"{title}\n{DIVIDER}\n\n{body}\n\n{RESTART_HINT}"


def _wa_stats(data: QueryStatistics) -> str:
    lines = [
        f"📊 *Your CRMS Statistics*\n{DIVIDER}\n",
        f"*Today:* {data.today}",
        f"*This Week:* {data.this_week}",
        f"*This Month:* {data.this_month}",
        f"*Total:* {data.total}",
        f"*Success Rate:* {data.success_rate:.1f}%",
    ]
    if data.by_type:
        lines.append("")
        lines.extend(f"• {name}: {count}" for name, count in sorted(data.by_type.items()))
    lines.append("\nReply with any message to continue.")
    return "\n".join(lines)
