"""Climblog repositories."""
from .climb_repository import ClimbRepository
from .tutorial_repository import TutorialRepository
from .user_repository import UserRepository

__all__ = ["ClimbRepository", "TutorialRepository", "UserRepository"]
