"""
Smart task templates.

Pre-filled tasks suggested when planning a given kind of event. Template
categories line up with the default budget categories so a priced template
lands in the expected bucket once it becomes a task.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from eventplanner.models.planner import EventType, TaskPriority


class SmartTaskTemplate(BaseModel):
    """A suggested task for one or more event types."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    price: Optional[float] = Field(default=None, ge=0)
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str
    icon: str
    event_types: tuple[EventType, ...]


def _templates(
    event_type: EventType,
    rows: list[tuple[str, str, float, TaskPriority, str, str]],
) -> list[SmartTaskTemplate]:
    return [
        SmartTaskTemplate(
            title=title,
            description=description,
            price=price,
            priority=priority,
            category=category,
            icon=icon,
            event_types=(event_type,),
        )
        for title, description, price, priority, category, icon in rows
    ]


_HIGH = TaskPriority.HIGH
_MEDIUM = TaskPriority.MEDIUM

SMART_TASK_TEMPLATES: tuple[SmartTaskTemplate, ...] = tuple(
    _templates(EventType.WEDDING, [
        ("Book Wedding Venue", "Compare ceremony and reception venues on capacity, location and dates.", 5000, _HIGH, "venue", "building"),
        ("Hire Photographer", "Review portfolios and packages, then book the photographer.", 3000, _HIGH, "photography", "camera"),
        ("Hire Videographer", "Book coverage for the ceremony and the reception.", 2500, _HIGH, "photography", "video"),
        ("Book Catering Service", "Pick the caterer, schedule a tasting and finalize the menu.", 4000, _HIGH, "catering", "utensils"),
        ("Order Wedding Cake", "Choose a design and schedule a tasting.", 500, _MEDIUM, "catering", "cake"),
        ("Hire Makeup Artist", "Book makeup for the couple and the wedding party.", 800, _HIGH, "makeup", "sparkles"),
        ("Book Hair Stylist", "Book hair styling and a trial session.", 600, _HIGH, "makeup", "scissors"),
        ("Book Florist", "Bouquets, centerpieces and ceremony arrangements.", 2000, _MEDIUM, "flowers", "flower"),
        ("Order Wedding Decorations", "Table settings, lighting and venue decor.", 1500, _MEDIUM, "flowers", "sparkles"),
        ("Hire DJ", "Book the DJ and share the must-play list.", 1200, _MEDIUM, "music", "music"),
        ("Book Live Band", "Audition and book a band for the reception.", 3000, _MEDIUM, "music", "music"),
        ("Buy Wedding Dress", "Shop, order and schedule fittings.", 2000, _HIGH, "attire", "shirt"),
        ("Buy Groom's Suit", "Choose, order and tailor the suit.", 800, _HIGH, "attire", "shirt"),
        ("Order Bridesmaid Dresses", "Pick styles and collect sizes.", 1200, _MEDIUM, "attire", "shirt"),
        ("Book Limousine", "Transport for the couple on the day.", 600, _MEDIUM, "transportation", "car"),
        ("Send Wedding Invitations", "Design, print and mail the invitations.", 300, _HIGH, "venue", "mail"),
        ("Book Officiant", "Confirm the officiant and the ceremony script.", 400, _HIGH, "venue", "user"),
        ("Order Wedding Rings", "Choose, size and engrave the rings.", 1500, _HIGH, "attire", "ring"),
    ])
    + _templates(EventType.BIRTHDAY, [
        ("Book Birthday Venue", "Find a venue that fits the guest list.", 500, _HIGH, "venue", "building"),
        ("Order Birthday Cake", "Choose flavor and design, order in advance.", 150, _HIGH, "catering", "cake"),
        ("Hire Photographer", "Capture the party.", 400, _MEDIUM, "photography", "camera"),
        ("Book Entertainment", "DJ, performer or games for the guests.", 300, _MEDIUM, "music", "music"),
        ("Send Invitations", "Send invitations and track RSVPs.", 50, _HIGH, "venue", "mail"),
        ("Buy Decorations", "Balloons, banners and table decor.", 200, _MEDIUM, "flowers", "sparkles"),
    ])
    + _templates(EventType.CORPORATE, [
        ("Book Conference Venue", "Venue with meeting rooms and AV support.", 2000, _HIGH, "venue", "building"),
        ("Arrange Catering", "Coffee breaks and lunch for attendees.", 1500, _HIGH, "catering", "utensils"),
        ("Book Audio/Visual Equipment", "Projectors, microphones and speakers.", 800, _HIGH, "music", "video"),
        ("Send Event Invitations", "Invite attendees and collect registrations.", 100, _HIGH, "venue", "mail"),
    ])
    + _templates(EventType.ANNIVERSARY, [
        ("Book Anniversary Venue", "Pick a place that fits the celebration.", 800, _HIGH, "venue", "building"),
        ("Order Anniversary Cake", "Order a cake for the occasion.", 100, _MEDIUM, "catering", "cake"),
        ("Book Photographer", "Capture the celebration.", 500, _MEDIUM, "photography", "camera"),
        ("Book Restaurant", "Reserve a table for the dinner.", 300, _HIGH, "catering", "utensils"),
    ])
    + _templates(EventType.GRADUATION, [
        ("Book Graduation Venue", "Venue for the graduation party.", 600, _HIGH, "venue", "building"),
        ("Order Graduation Cake", "Order a themed cake.", 120, _MEDIUM, "catering", "cake"),
        ("Hire Photographer", "Photos of the ceremony and party.", 400, _HIGH, "photography", "camera"),
        ("Send Graduation Invitations", "Announcements and party invitations.", 60, _HIGH, "venue", "mail"),
    ])
    + _templates(EventType.BABY_SHOWER, [
        ("Book Baby Shower Venue", "Venue for the shower.", 400, _HIGH, "venue", "building"),
        ("Order Baby Shower Cake", "Order a themed cake.", 100, _MEDIUM, "catering", "cake"),
        ("Buy Decorations", "Balloons, banners and table decor.", 150, _MEDIUM, "flowers", "sparkles"),
        ("Send Invitations", "Send invitations and track RSVPs.", 40, _HIGH, "venue", "mail"),
    ])
)


def templates_for_event_type(event_type: EventType) -> list[SmartTaskTemplate]:
    """Templates for the given event type, plus any marked as custom."""
    return [
        template
        for template in SMART_TASK_TEMPLATES
        if event_type in template.event_types or EventType.CUSTOM in template.event_types
    ]
