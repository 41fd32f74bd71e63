"""Convenience exports for the models package."""

from .announcement import Announcement
from .approval_history import ApprovalHistory
from .budget import Budget, BudgetExpense, BudgetStatus
from .committee_member import CommitteeMember
from .food_registration import FoodPreference, FoodRegistration
from .login_request import LoginRequest
from .match import Match, MatchStatus
from .one_time_passcode import OneTimePasscode
from .player import Player
from .recorded_result import RecordedResult
from .team import Team
from .tournament import MatchFormat, Tournament, TournamentStatus, TournamentType
from .tournament_standing import TournamentStanding
from .user import ApprovalStatus, User, UserRole, UserType
