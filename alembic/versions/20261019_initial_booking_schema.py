"""initial booking schema

Revision ID: 4c1f0b7a9e21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1f0b7a9e21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUM_TYPES = (
    'userrole',
    'planscope',
    'accessstate',
    'classinstancestatus',
    'waitliststatus',
    'bookingstatus',
    'bookingattendancestatus',
    'classinstanceeventtype',
    'notificationtype',
)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('role', sa.Enum('OWNER', 'ADMIN', 'STAFF', 'INSTRUCTOR', 'MEMBER', name='userrole'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('region', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_locations_id', 'locations', ['id'])
    op.create_index('ix_locations_region', 'locations', ['region'])

    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('home_location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=True),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_members_id', 'members', ['id'])

    op.create_table(
        'membership_plans',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column(
            'scope',
            sa.Enum('SINGLE_LOCATION', 'REGIONAL', 'ALL_LOCATIONS', name='planscope'),
            nullable=False,
        ),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_membership_plans_id', 'membership_plans', ['id'])

    op.create_table(
        'member_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('membership_plans.id'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=False),
        sa.Column(
            'access_state',
            sa.Enum('ACTIVE', 'GRACE', 'RESTRICTED', 'INACTIVE', name='accessstate'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('access_state_changed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_member_subscriptions_id', 'member_subscriptions', ['id'])
    op.create_index('ix_member_subscriptions_member_id', 'member_subscriptions', ['member_id'])
    op.create_index('ix_member_subscriptions_plan_id', 'member_subscriptions', ['plan_id'])
    op.create_index('ix_member_subscriptions_location_id', 'member_subscriptions', ['location_id'])

    op.create_table(
        'location_capacity_limits',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('max_active_members', sa.Integer(), nullable=True),
        sa.Column('soft_limit_threshold', sa.Integer(), nullable=True),
        sa.Column('hard_limit_enforced', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_location_capacity_limits_id', 'location_capacity_limits', ['id'])

    op.create_table(
        'plan_location_capacity_limits',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('membership_plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('max_active_members', sa.Integer(), nullable=True),
        sa.Column('soft_limit_threshold', sa.Integer(), nullable=True),
        sa.Column('hard_limit_enforced', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('plan_id', 'location_id', name='uq_plan_location_capacity_limit'),
    )
    op.create_index('ix_plan_location_capacity_limits_id', 'plan_location_capacity_limits', ['id'])

    op.create_table(
        'class_schedules',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=False),
        sa.Column('instructor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('class_name', sa.String(), nullable=False),
        sa.Column('weekday', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('late_cancel_cutoff_minutes', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.CheckConstraint('capacity >= 1', name='ck_class_schedules_capacity_positive'),
        sa.CheckConstraint('weekday >= 0 AND weekday <= 6', name='ck_class_schedules_weekday'),
    )
    op.create_index('ix_class_schedules_id', 'class_schedules', ['id'])
    op.create_index('ix_class_schedules_location_id', 'class_schedules', ['location_id'])

    op.create_table(
        'class_instances',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('schedule_id', sa.Integer(), sa.ForeignKey('class_schedules.id'), nullable=True),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=False),
        sa.Column('instructor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('class_name', sa.String(), nullable=False),
        sa.Column('class_date', sa.Date(), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('SCHEDULED', 'CANCELED', 'COMPLETED', name='classinstancestatus'),
            nullable=False,
        ),
        sa.Column('late_cancel_cutoff_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(), nullable=True),
        sa.CheckConstraint('capacity >= 1', name='ck_class_instances_capacity_positive'),
        sa.UniqueConstraint('schedule_id', 'class_date', name='uq_class_instances_schedule_date'),
    )
    op.create_index('ix_class_instances_id', 'class_instances', ['id'])
    op.create_index('ix_class_instances_schedule_id', 'class_instances', ['schedule_id'])
    op.create_index('ix_class_instances_location_id', 'class_instances', ['location_id'])

    op.create_table(
        'waitlist_entries',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('class_instance_id', sa.Integer(), sa.ForeignKey('class_instances.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('WAITING', 'PROMOTED', 'REMOVED', name='waitliststatus'), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('promoted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('removed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('removal_reason', sa.String(), nullable=True),
        sa.UniqueConstraint('class_instance_id', 'position', name='uq_waitlist_instance_position'),
    )
    op.create_index('ix_waitlist_entries_id', 'waitlist_entries', ['id'])
    op.create_index('ix_waitlist_entries_member_id', 'waitlist_entries', ['member_id'])
    op.create_index('ix_waitlist_entries_class_instance_id', 'waitlist_entries', ['class_instance_id'])
    op.create_index(
        'uq_waitlist_waiting_member_instance',
        'waitlist_entries',
        ['member_id', 'class_instance_id'],
        unique=True,
        postgresql_where=sa.text("status = 'WAITING'"),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('class_instance_id', sa.Integer(), sa.ForeignKey('class_instances.id'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('BOOKED', 'CANCELED', 'ATTENDED', 'NO_SHOW', name='bookingstatus'),
            nullable=False,
        ),
        sa.Column(
            'attendance_status',
            sa.Enum('NONE', 'CHECKED_IN', 'NO_SHOW', 'EXCUSED', name='bookingattendancestatus'),
            nullable=False,
        ),
        sa.Column('booked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.String(), nullable=True),
        sa.Column('attendance_marked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attendance_marked_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('promoted_from_waitlist_id', sa.Integer(), sa.ForeignKey('waitlist_entries.id'), nullable=True),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_member_id', 'bookings', ['member_id'])
    op.create_index('ix_bookings_class_instance_id', 'bookings', ['class_instance_id'])
    op.create_index('ix_bookings_instance_status', 'bookings', ['class_instance_id', 'status'])
    op.create_index(
        'uq_bookings_active_member_instance',
        'bookings',
        ['member_id', 'class_instance_id'],
        unique=True,
        postgresql_where=sa.text("status = 'BOOKED'"),
    )

    op.create_table(
        'class_instance_events',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('class_instance_id', sa.Integer(), sa.ForeignKey('class_instances.id'), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column(
            'event_type',
            sa.Enum(
                'CAPACITY_CHANGED',
                'CLASS_CANCELLED',
                'CLASS_RESCHEDULED',
                'ROSTER_EDITED',
                'MEMBER_REMOVED',
                name='classinstanceeventtype',
            ),
            nullable=False,
        ),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_class_instance_events_id', 'class_instance_events', ['id'])
    op.create_index('ix_class_instance_events_class_instance_id', 'class_instance_events', ['class_instance_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'type',
            sa.Enum('BOOKING_CONFIRMED', 'BOOKING_CANCELLED', 'WAITLIST_PROMOTED', name='notificationtype'),
            nullable=False,
        ),
        sa.Column('status', sa.String(), nullable=False, server_default='queued'),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notifications_id', 'notifications', ['id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('class_instance_events')
    op.drop_index('uq_bookings_active_member_instance', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('uq_waitlist_waiting_member_instance', table_name='waitlist_entries')
    op.drop_table('waitlist_entries')
    op.drop_table('class_instances')
    op.drop_table('class_schedules')
    op.drop_table('plan_location_capacity_limits')
    op.drop_table('location_capacity_limits')
    op.drop_table('member_subscriptions')
    op.drop_table('membership_plans')
    op.drop_table('members')
    op.drop_table('locations')
    op.drop_table('users')
    for enum_name in ENUM_TYPES:
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
