from .class_instance import (
    get_class_instance,
    get_class_instance_for_update,
    count_booked,
    get_instances_with_open_seats,
    create_class_instance,
)
from .booking import (
    get_booking,
    get_member_booking,
    get_active_booking,
    get_booked_bookings,
    create_booking,
)
from .waitlist import (
    get_waitlist_entry,
    get_waiting_entry,
    get_waiting_entries,
    get_max_position,
    create_waitlist_entry,
)
from .membership import (
    get_member,
    get_member_by_user_id,
    get_location,
    get_plan,
    get_member_subscriptions,
)
