from .user import UserRole, User
from .location import Location
from .member import Member
from .membership import AccessState, ACTIVE_LIKE_STATES, PlanScope, MembershipPlan, MemberSubscription
from .capacity_limit import LocationCapacityLimit, PlanLocationCapacityLimit
from .class_instance import ClassInstanceStatus, ClassSchedule, ClassInstance
from .booking import BookingStatus, BookingAttendanceStatus, CancellationReason, Booking
from .waitlist import WaitlistStatus, WaitlistRemovalReason, WaitlistEntry
from .class_instance_event import ClassInstanceEventType, ClassInstanceEvent
from .notification import NotificationType, Notification
