# server/core/repository.py

from sqlalchemy.orm import Session, joinedload

from models.user import User, UserProfile


class UserRepository:
    """
    Data access for users and their profiles.
    Handlers receive it per request; it never commits on its own except in
    create_with_profile/save, which are the write paths the handlers use.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_username(self, username: str) -> User | None:
        return (
            self.db.query(User)
            .options(joinedload(User.profile))
            .filter(User.username == username)
            .first()
        )

    def get_active(self, username: str) -> User | None:
        user = self.get_by_username(username)
        if user is None or not user.is_active:
            return None
        return user

    def exists_active(self, username: str) -> bool:
        return self.get_active(username) is not None

    def get_profile(self, user: User) -> UserProfile | None:
        return self.db.query(UserProfile).filter(UserProfile.user_id == user.id).first()

    def list_users(self, deleted: bool | None = False) -> list[User]:
        """
        deleted=False -> active users, True -> soft-deleted users, None -> everyone.
        """
        query = self.db.query(User).options(joinedload(User.profile))
        if deleted is True:
            query = query.filter(User.deleted_at.is_not(None))
        elif deleted is False:
            query = query.filter(User.deleted_at.is_(None))
        return query.order_by(User.username.asc()).all()

    def create_with_profile(self, user: User, profile: UserProfile) -> User:
        """
        Inserts a user and its profile in one transaction; on failure
        neither row is kept.
        """
        try:
            self.db.add(user)
            self.db.flush()
            profile.user_id = user.id
            self.db.add(profile)
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return user

    def save(self, *objs):
        for obj in objs:
            self.db.add(obj)
        self.db.commit()
