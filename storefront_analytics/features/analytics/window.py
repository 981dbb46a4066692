"""Reporting window resolution.

Windows are half-open ``[start, end)``. Presets count back from ``now`` by a
fixed number of days with no calendar alignment; ``today`` is the exception
and spans the local calendar day containing ``now``.
"""

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from storefront_analytics.core.config import Settings, get_settings
from storefront_analytics.core.exceptions import BadRequestError
from storefront_analytics.features.analytics.schemas import AnalyticsWindow, PeriodPreset

PRESET_LOOKBACK: dict[PeriodPreset, timedelta] = {
    PeriodPreset.LAST_7_DAYS: timedelta(days=7),
    PeriodPreset.LAST_30_DAYS: timedelta(days=30),
    PeriodPreset.LAST_90_DAYS: timedelta(days=90),
    PeriodPreset.LAST_YEAR: timedelta(days=365),
}


def load_timezone(name: str) -> ZoneInfo:
    """Load an IANA timezone.

    Raises:
        BadRequestError: If the name is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise BadRequestError(
            message=f"Unknown timezone '{name}'",
            details={"timezone": name},
        ) from e


def ensure_aware(moment: datetime) -> datetime:
    """Interpret naive timestamps as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def resolve_window(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    period: PeriodPreset | None = None,
    now: datetime | None = None,
    timezone: str | None = None,
    settings: Settings | None = None,
) -> AnalyticsWindow:
    """Resolve explicit bounds or a preset into a validated window.

    Explicit ``start``/``end`` take precedence over ``period``. With neither,
    the configured default period applies.

    Args:
        start: Window start (inclusive).
        end: Window end (exclusive).
        period: Relative period preset.
        now: Reference time for presets. Defaults to the current UTC time.
        timezone: IANA timezone used for ``today``.
        settings: Settings override (defaults to cached settings).

    Returns:
        Resolved window.

    Raises:
        BadRequestError: If the bounds are incomplete, inverted or too long.
    """
    settings = settings or get_settings()

    if (start is None) != (end is None):
        raise BadRequestError(
            message="Both start and end must be provided for a custom window",
            details={"start": str(start), "end": str(end)},
        )

    if start is not None and end is not None:
        window_start, window_end = ensure_aware(start), ensure_aware(end)
    else:
        reference = ensure_aware(now) if now is not None else datetime.now(UTC)
        preset = period or PeriodPreset(settings.analytics_default_period)
        if preset == PeriodPreset.TODAY:
            tz = load_timezone(timezone or settings.analytics_timezone)
            local_day = reference.astimezone(tz).date()
            window_start = datetime.combine(local_day, time.min, tzinfo=tz)
            window_end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
        else:
            window_start = reference - PRESET_LOOKBACK[preset]
            window_end = reference

    if window_end <= window_start:
        raise BadRequestError(
            message="Window end must be after window start",
            details={"start": window_start.isoformat(), "end": window_end.isoformat()},
        )

    max_range = timedelta(days=settings.analytics_max_date_range_days)
    if window_end - window_start > max_range:
        raise BadRequestError(
            message=f"Window exceeds {settings.analytics_max_date_range_days} days",
            details={"start": window_start.isoformat(), "end": window_end.isoformat()},
        )

    return AnalyticsWindow(start=window_start, end=window_end)


def previous_window(window: AnalyticsWindow) -> AnalyticsWindow:
    """Return the equal-length window immediately preceding ``window``."""
    return AnalyticsWindow(start=window.start - window.duration, end=window.start)
