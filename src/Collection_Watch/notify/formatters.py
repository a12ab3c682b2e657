"""Alert text for every notification kind.

All functions are pure and transport-agnostic. ``markdown=True`` produces the
Telegram flavour (collection names as inline links, link lines omitted because
the message carries a button); ``markdown=False`` produces plain text with the
link spelled out.
"""

from __future__ import annotations

import datetime
import logging
import math
from zoneinfo import ZoneInfo

from Collection_Watch.models.collection import SECONDS_PER_DAY, Collection
from Collection_Watch.models.events import (
    AlertMessage,
    FinishingItem,
    PriceDropAlert,
    ProgressChangeAlert,
)
from Collection_Watch.models.revenue import LatestRevenue

logger = logging.getLogger(__name__)

# --- Public sites collections are linked to ---
PUBLIC_SITE_URL: str = "https://sss.ortak.me"
HAYO_SITE_URL: str = "https://hayo.ortak.me"
FAST_SITE_URL: str = "https://fast.ortak.me"

SECONDS_PER_HOUR: int = 60 * 60
MONTHS_PER_YEAR: int = 12


def collection_url(slug: str, site: str = PUBLIC_SITE_URL) -> str:
    """Public page of a collection on *site*."""
    return f"{site}/collections/{slug}/nfts"


def collection_hashtag(slug: str) -> str:
    """``"golden-goose"`` -> ``"#GoldenGoose"``."""
    return "#" + "".join(word[:1].upper() + word[1:] for word in slug.split("-"))


def trim_number(value: float, places: int = 5) -> str:
    """Fixed-point text with trailing zeros (and a bare dot) removed."""
    text = f"{value:.{places}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_time_until_reward(reward_seconds: float | None) -> str:
    """``"3 days, 4 hours"`` style countdown to a payout."""
    seconds = reward_seconds or 0
    days = math.floor(seconds / SECONDS_PER_DAY)
    hours = math.floor((seconds % SECONDS_PER_DAY) / SECONDS_PER_HOUR)
    if days > 0:
        return f"{days} days, {hours} hours" if hours > 0 else f"{days} days"
    return f"{hours} hours"


def format_time_left(seconds: float) -> str:
    """Countdown to launch in the coarsest sensible unit."""
    whole = int(seconds)
    if whole < 60:  # noqa: PLR2004
        return f"{whole} seconds"
    if whole < SECONDS_PER_HOUR:
        return f"{whole // 60} minutes"
    hours = whole // SECONDS_PER_HOUR
    minutes = (whole % SECONDS_PER_HOUR) // 60
    return f"{hours} hours" if minutes == 0 else f"{hours} hours {minutes} minutes"


def format_launch_time(
    seconds_left: float,
    timezone: str,
    *,
    now: datetime.datetime | None = None,
) -> str:
    """Wall-clock launch time (``HH:MM``) in *timezone*."""
    current = now or datetime.datetime.now(datetime.UTC)
    launch = current + datetime.timedelta(seconds=seconds_left)
    return launch.astimezone(ZoneInfo(timezone)).strftime("%H:%M")


def expiration_days(reward_seconds: float | None) -> int:
    return round((reward_seconds or 0) / SECONDS_PER_DAY)


def _title(name: str, url: str, *, markdown: bool) -> str:
    return f"[{name}]({url})" if markdown else name


def _view_button(collection: Collection) -> str:
    return "🔗 View Snowball" if collection.is_time_boxed else "🔗 View Collection"


def _status_icon(percent: float) -> str:
    return "🔴" if percent < 100 else "🟢"  # noqa: PLR2004


def _revenue_lines(revenue: LatestRevenue, sign: str) -> str:
    diff = round(revenue.revenue - revenue.previous_revenue)
    return (
        f"📈 GGR: {round(revenue.revenue)} FTN ({sign}{diff} FTN)\n"
        f"🎯 Predicted GGR: {round(revenue.predicted_revenue or 0)} FTN\n"
    )


def _change_body(alert: ProgressChangeAlert, title: str) -> str:
    collection = alert.collection
    previous = alert.change.previous
    change = collection.percent - previous
    direction = "🟢⬆️" if collection.percent > previous else "🔴⬇️"
    sign = "+" if round(change, 2) > 0 else ""

    text = (
        f"{direction} Change: {sign}{change:.2f}% {title}\n"
        f"🔹 New: {collection.percent:.2f}%\n"
        f"🔹 Old: {previous:.2f}%\n"
    )
    if alert.latest_revenue is not None:
        text += _revenue_lines(alert.latest_revenue, sign)
    if collection.is_time_boxed:
        text += f"⏳ Reward in: {format_time_until_reward(collection.reward_date)}\n"
    return text


def format_change_message(
    alert: ProgressChangeAlert,
    *,
    markdown: bool = False,
    site: str = PUBLIC_SITE_URL,
) -> AlertMessage:
    """Progress-change alert for the public channels."""
    url = collection_url(alert.collection.slug, site)
    text = _change_body(alert, _title(alert.collection.name, url, markdown=markdown))
    return AlertMessage(text=text, url=url, button_text=_view_button(alert.collection))


def format_privileged_change_message(
    alert: ProgressChangeAlert,
    *,
    site: str = PUBLIC_SITE_URL,
) -> AlertMessage:
    """Progress-change alert for the privileged channel, with a fast-site link."""
    slug = alert.collection.slug
    text = _change_body(alert, alert.collection.name) + f"\n{collection_hashtag(slug)}"
    return AlertMessage(
        text=text,
        url=collection_url(slug, site),
        button_text="SSS",
        secondary_url=collection_url(slug, FAST_SITE_URL),
    )


def format_new_collection_message(
    collection: Collection,
    *,
    markdown: bool = False,
    site: str = PUBLIC_SITE_URL,
    timezone: str = "Asia/Yerevan",
    now: datetime.datetime | None = None,
) -> AlertMessage:
    """Announcement for a freshly discovered collection."""
    url = collection_url(collection.slug, site)
    header = (
        "❄️ 🆕 *NEW SNOWBALL* 🆕 ❄️\n"
        if collection.is_time_boxed
        else "🔥 🆕 *NEW COLLECTION* 🆕 🔥\n"
    )
    text = (
        header
        + f"{_title(collection.name, url, markdown=markdown)}\n\n"
        + f"👥 Supply: {collection.nfts_count} pcs.\n"
        + f"💰 Price: {trim_number(collection.original_price)} FTN\n"
        + f"📊 Percent: {trim_number(collection.percent)}%\n"
    )
    if collection.live_date:
        text += (
            f"⏰ Launch Time: {format_launch_time(collection.live_date, timezone, now=now)}\n"
            f"⏳ Time Left: {format_time_left(collection.live_date)}\n"
        )
    if collection.is_time_boxed:
        text += f"⏳ Expires in: {expiration_days(collection.reward_date)} days\n"
    return AlertMessage(text=text, url=url, button_text=_view_button(collection))


def format_last_chance_message(
    collection: Collection,
    *,
    markdown: bool = False,
    site: str = PUBLIC_SITE_URL,
) -> AlertMessage:
    """Final call shortly before a collection goes live."""
    url = collection_url(collection.slug, site)
    title = _title(collection.name, url, markdown=True) if markdown else f"*{collection.name}*"
    text = (
        "⚡️ 🚨 *LAST CHANCE* 🚨 ⚡️\n"
        f"{title}\n\n"
        f"👥 Supply: {collection.nfts_count} pcs.\n"
        f"💰 Price: {trim_number(collection.original_price)} FTN\n"
        f"📊 Percent: {trim_number(collection.percent)}%\n"
        f"⚠️ LAUNCHING IN {format_time_left(collection.live_date or 0)} ⚠️"
    )
    return AlertMessage(
        text=text,
        url=url,
        button_text=f"🏃‍♂️ Quick {_view_button(collection)}",
    )


def monthly_reward(collection: Collection) -> float:
    """Monthly payout of one item bought at the original price."""
    return collection.original_price * collection.percent / 100 / MONTHS_PER_YEAR


def format_reward_message(
    collections: list[Collection],
    *,
    time_boxed: bool = False,
    markdown: bool = False,
    site: str = PUBLIC_SITE_URL,
) -> str:
    """Digest of collections paying out within the next two days.

    Returns an empty string when there is nothing to report.
    """
    if not collections:
        return ""

    entries: list[str] = []
    for collection in collections:
        url = collection_url(collection.slug, site)
        entry = (
            f"🎮 {_title(collection.name, url, markdown=markdown)}\n"
            f"⏰ Reward in: {format_time_until_reward(collection.reward_date)}\n"
        )
        if time_boxed:
            icon = _status_icon(collection.percent)
            entry += f"🔸 Percent: {collection.percent:.2f}% {icon}\n"
        else:
            entry += f"💰 Reward amount: {monthly_reward(collection):.4f} FTN\n"
        if not markdown:
            entry += f"🔗 {url}\n"
        entries.append(entry)

    header = (
        "❄️ Upcoming Snowball Rewards (Next 2 Days)"
        if time_boxed
        else "⚡️ Upcoming Rewards (Next 2 Days)"
    )
    return f"{header}\n\n" + "\n\n".join(entries)


def format_finishing_message(
    items: list[FinishingItem],
    *,
    markdown: bool = False,
    site: str = PUBLIC_SITE_URL,
) -> str:
    """Batched notice for time-boxed collections about to close."""
    entries: list[str] = []
    for item in items:
        collection = item.collection
        url = collection_url(collection.slug, site)
        entry = (
            f"{_title(collection.name, url, markdown=markdown)}\n"
            f"🔸 Percent: {collection.percent:.2f}% {_status_icon(collection.percent)}\n"
        )
        if item.latest_revenue is not None:
            entry += (
                f"📈 GGR: {round(item.latest_revenue.revenue)} FTN\n"
                f"🎯 Predicted GGR: {round(item.latest_revenue.predicted_revenue or 0)} FTN\n"
            )
        if not markdown:
            entry += f"🔗 {url}\n"
        entries.append(entry)
    return "❄️ SNOWBALLS ENDING IN 5 MINUTES ❄️\n\n" + "\n".join(entries)


def format_price_drop_message(
    alert: PriceDropAlert,
    *,
    with_links: bool = False,
    site: str = PUBLIC_SITE_URL,
) -> AlertMessage:
    """Lowest-price drop for one listed item."""
    listing = alert.listing
    monthly = listing.remuneration.average_budget * listing.remuneration.reward_interval
    yearly_percent = monthly * MONTHS_PER_YEAR / listing.price * 100 if listing.price else 0.0

    text = (
        f"🎭 {listing.name}\n"
        f"💹 {trim_number(yearly_percent, 2)}%\n"
        f"💵 Price: {trim_number(listing.price, 3)} FTN\n"
        f"📉 Old Price: {trim_number(alert.previous_lowest.price, 3)} FTN\n"
        f"🚀 Original Price: {trim_number(alert.collection.original_price)} FTN\n"
        f"⏳ Reward in: {format_time_until_reward(alert.collection.reward_date)}\n"
        f"🪙 Monthly: {trim_number(monthly, 5)} FTN"
    )
    item_url = f"{site}/en/nfts/{listing.slug}"
    if with_links:
        text += (
            f"\n🔍 View NFT: {item_url}"
            f"\n📊 View Collection: {site}/en/collections/{alert.collection.slug}/nfts"
        )
    return AlertMessage(
        text=text,
        url=item_url,
        button_text="🔍 NFT",
        secondary_url=f"{site}/en/collections/{alert.collection.slug}/nfts",
    )


# --- Telegram hashtag footers ---


def change_hashtags(collection: Collection) -> str:
    tag = collection_hashtag(collection.slug)
    kind = (
        "#SnowballPercentageChange" if collection.is_time_boxed else "#CollectionPercentageChange"
    )
    return f"\n{kind} {tag}"


def new_collection_hashtags(collection: Collection) -> str:
    return f"\n#NewCollection {collection_hashtag(collection.slug)}"


def reward_hashtags(*, time_boxed: bool) -> str:
    return "\n#UpcomingSnowballRewards" if time_boxed else "\n#UpcomingRewards"


FINISHING_HASHTAGS: str = "\n#SnowballFinalStats #EndingSnowballs"
