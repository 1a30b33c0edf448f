from fitpulse.models.user import Follow, User
from fitpulse.models.workout import Workout
from fitpulse.models.goal import Goal
from fitpulse.models.badge import BadgeAward, BadgeDefinition
from fitpulse.models.personal_record import PersonalRecord
from fitpulse.models.challenge import Challenge, ChallengeParticipant
from fitpulse.models.training_plan import PlanWeek, PlanWorkout, TrainingPlan
from fitpulse.models.audit_log import AuditLog

__all__ = [
    "User",
    "Follow",
    "Workout",
    "Goal",
    "BadgeDefinition",
    "BadgeAward",
    "PersonalRecord",
    "Challenge",
    "ChallengeParticipant",
    "TrainingPlan",
    "PlanWeek",
    "PlanWorkout",
    "AuditLog",
]
