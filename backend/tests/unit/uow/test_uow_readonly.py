import pytest
from authgate.models.user import User
from authgate.uow import (
    SQLAlchemyReadOnlyUnitOfWork as ROuow,
)
from authgate.uow import (
    SQLAlchemyUnitOfWork as RWuow,
)
from tests.factories.user import UserFactory


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_blocks_orm_flush_writes(self, app, db, session):
        """
        Ensure that attempting to flush ORM changes inside the RO UoW raises.
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            uow.session.add(UserFactory.build())
            uow.session.flush()

    def test_allows_reads(self, app, db, session):
        """
        Read operations should work normally within RO UoW.
        """
        with RWuow() as uow:
            uow.session.add(UserFactory.build(username="reader"))

        with ROuow() as uow:
            assert uow.users.find_by_username("reader") is not None

    def test_disallows_commit(self, app, db, session):
        """
        RO UoW must reject commit() by design.
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()

    def test_always_rolls_back_changes(self, app, db, session):
        """
        Any attempted modifications must not persist after RO UoW exits.
        """
        user = UserFactory(username="original")
        user_id = user.id

        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            u = uow.session.get(User, user_id)
            u.role = "Admin"
            uow.session.flush()

        with RWuow() as uow:
            persisted = uow.session.get(User, user_id)
            assert persisted.role == "User"

    def test_guard_removed_after_exit(self, app, db, session):
        """
        Writes are allowed again once the RO scope has closed.
        """
        with ROuow():
            pass

        with RWuow() as uow:
            uow.users.add(UserFactory.build())
