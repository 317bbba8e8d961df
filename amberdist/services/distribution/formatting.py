from __future__ import annotations

from amberdist.domain.distribution import Alert, FormattedMessage


# Two concatenated 160-character SMS segments.
SMS_MAX_LENGTH = 320
BASE_HASHTAGS = ("AMBERAlert", "MissingChild", "HelpFindThem")


def public_alert_url(alert: Alert, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/{alert.alert_number}"


def _last_seen(alert: Alert) -> str:
    parts = [alert.abduction_location, alert.abduction_city, alert.abduction_province]
    return ", ".join(part for part in parts if part)


def _vehicle_line(alert: Alert) -> str | None:
    if not alert.vehicle_involved:
        return None
    description = " ".join(
        str(part) for part in (alert.vehicle_color, alert.vehicle_make, alert.vehicle_model) if part
    )
    line = f"Vehicle: {description}" if description else "Vehicle involved"
    if alert.vehicle_license_plate:
        line += f" - Plate: {alert.vehicle_license_plate}"
        if alert.vehicle_license_province:
            line += f" ({alert.vehicle_license_province})"
    return line


def format_alert_message(alert: Alert) -> str:
    # Canonical plain-text summary reused by partner, social, and email bodies.
    lines = [f"AMBER Alert issued for {alert.child_name}."]
    if alert.child_age is not None:
        lines.append(f"Age: {alert.child_age}.")
    if alert.child_description:
        lines.append(alert.child_description)
    last_seen = _last_seen(alert)
    if last_seen:
        lines.append(f"Last seen: {last_seen}.")
    vehicle = _vehicle_line(alert)
    if vehicle:
        lines.append(f"{vehicle}.")
    if alert.suspect_name or alert.suspect_description:
        suspect = ", ".join(part for part in (alert.suspect_name, alert.suspect_description) if part)
        lines.append(f"Suspect: {suspect}.")
    if alert.requesting_officer_phone:
        lines.append(f"Contact: {alert.requesting_officer_phone}")
    return " ".join(lines)


def format_sms_message(alert: Alert, *, link: str) -> FormattedMessage:
    location = ", ".join(part for part in (alert.abduction_city, alert.abduction_province) if part)
    body = f"AMBER ALERT: {alert.child_name} missing"
    if location:
        body += f" from {location}"
    body += "."
    if alert.vehicle_involved and alert.vehicle_license_plate:
        body += f" Plate {alert.vehicle_license_plate}."
    if alert.requesting_officer_phone:
        body += f" Info? Call {alert.requesting_officer_phone}."
    suffix = f" Details: {link}"
    # Trim the descriptive part, never the link.
    room = SMS_MAX_LENGTH - len(suffix)
    if len(body) > room:
        body = body[: max(0, room - 3)].rstrip() + "..."
    return FormattedMessage(subject=f"AMBER ALERT: {alert.child_name}", body=body + suffix)


def format_push_message(alert: Alert) -> FormattedMessage:
    who = f"{alert.child_age} year old" if alert.child_age is not None else "child"
    location = ", ".join(part for part in (alert.abduction_city, alert.abduction_province) if part)
    body = f"Missing {who}"
    if location:
        body += f" from {location}"
    body += ". Tap for details."
    return FormattedMessage(
        subject=f"AMBER Alert: {alert.child_name}",
        body=body,
        tag=f"amber-{alert.alert_number}",
    )


def format_email_message(alert: Alert, *, link: str) -> FormattedMessage:
    body_lines = [format_alert_message(alert), "", "If you have any information, call 911 immediately."]
    if alert.requesting_officer_agency:
        body_lines.append(f"Issuing agency: {alert.requesting_officer_agency}")
    body_lines.append(f"Full alert: {link}")
    return FormattedMessage(subject=f"AMBER ALERT: {alert.child_name}", body="\n".join(body_lines))


def format_press_release(alert: Alert, *, link: str) -> FormattedMessage:
    # Media outlets get a release-style message with the alert number up front.
    body_lines = [
        "FOR IMMEDIATE RELEASE",
        f"AMBER Alert {alert.alert_number}",
        "",
        format_alert_message(alert),
    ]
    if alert.abduction_circumstances:
        body_lines.extend(["", f"Circumstances: {alert.abduction_circumstances}"])
    if alert.requesting_officer_name or alert.requesting_officer_agency:
        officer = ", ".join(
            part for part in (alert.requesting_officer_name, alert.requesting_officer_agency) if part
        )
        body_lines.extend(["", f"Media contact: {officer}"])
    body_lines.extend(["", f"Photos and updates: {link}"])
    return FormattedMessage(
        subject=f"AMBER ALERT {alert.alert_number}: {alert.child_name}",
        body="\n".join(body_lines),
    )


def social_hashtags(alert: Alert) -> list[str]:
    tags = list(BASE_HASHTAGS)
    if alert.abduction_province:
        tags.append("".join(alert.abduction_province.split()))
    return tags


def format_social_post(alert: Alert) -> FormattedMessage:
    location = ", ".join(part for part in (alert.abduction_city, alert.abduction_province) if part)
    body = f"AMBER ALERT: {alert.child_name}"
    if alert.child_age is not None:
        body += f", {alert.child_age}"
    if location:
        body += f", missing from {location}"
    body += "."
    vehicle = _vehicle_line(alert)
    if vehicle:
        body += f" {vehicle}."
    body += " If seen, call 911."
    return FormattedMessage(subject=f"AMBER Alert: {alert.child_name}", body=body)
