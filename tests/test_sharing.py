from datetime import timedelta

import pytest
from sqlalchemy import select

from app.core.errors import ConflictError, ExpiredError, ForbiddenError, NotFoundError
from app.models.base import utcnow
from app.models.note_access import NoteAccess, Role
from app.models.note_invite import NoteInvite
from app.services.notifier import InviteEmail
from app.services.sharing import (
    accept_invite,
    change_role,
    create_invite,
    grant_or_update_access,
    list_access,
    list_invites,
    revoke_access,
    share_note,
)


async def roles_on(db, note_id):
    result = await db.execute(select(NoteAccess.user_id, NoteAccess.role).where(NoteAccess.note_id == note_id))
    return dict(result.all())


class TestGrantAndRevoke:
    @pytest.mark.asyncio
    async def test_owner_grants_then_changes_role(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        bob = await make_user("bob@example.com")
        note = await make_note(owner)

        await grant_or_update_access(db_session, owner.id, note.id, bob.id, Role.VIEWER)
        await grant_or_update_access(db_session, owner.id, note.id, bob.id, Role.EDITOR)

        assert await roles_on(db_session, note.id) == {bob.id: "editor"}

    @pytest.mark.asyncio
    async def test_editor_can_grant_but_not_change_roles(self, db_session, make_user, make_note, grant):
        owner = await make_user("owner@example.com")
        editor = await make_user("editor@example.com")
        carol = await make_user("carol@example.com")
        note = await make_note(owner)
        await grant(note, editor, "editor")

        await grant_or_update_access(db_session, editor.id, note.id, carol.id, Role.VIEWER)
        # same role again is fine
        await grant_or_update_access(db_session, editor.id, note.id, carol.id, Role.VIEWER)

        before = await roles_on(db_session, note.id)
        with pytest.raises(ForbiddenError):
            await grant_or_update_access(db_session, editor.id, note.id, carol.id, Role.EDITOR)
        with pytest.raises(ForbiddenError):
            await change_role(db_session, editor.id, note.id, carol.id, Role.EDITOR)
        assert await roles_on(db_session, note.id) == before
        assert before[carol.id] == "viewer"

    @pytest.mark.asyncio
    async def test_viewer_cannot_grant(self, db_session, make_user, make_note, grant):
        owner = await make_user("owner@example.com")
        viewer = await make_user("viewer@example.com")
        carol = await make_user("carol@example.com")
        note = await make_note(owner)
        await grant(note, viewer, "viewer")

        with pytest.raises(ForbiddenError):
            await grant_or_update_access(db_session, viewer.id, note.id, carol.id, Role.VIEWER)

    @pytest.mark.asyncio
    async def test_granting_to_owner_conflicts(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        with pytest.raises(ConflictError):
            await grant_or_update_access(db_session, owner.id, note.id, owner.id, Role.EDITOR)

    @pytest.mark.asyncio
    async def test_grant_to_unknown_user(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        with pytest.raises(NotFoundError):
            await grant_or_update_access(db_session, owner.id, note.id, 4242, Role.VIEWER)

    @pytest.mark.asyncio
    async def test_change_role_requires_existing_access(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        bob = await make_user("bob@example.com")
        note = await make_note(owner)
        with pytest.raises(NotFoundError):
            await change_role(db_session, owner.id, note.id, bob.id, Role.EDITOR)

    @pytest.mark.asyncio
    async def test_revoke_removes_access_and_is_repeatable(self, db_session, make_user, make_note, grant):
        owner = await make_user("owner@example.com")
        bob = await make_user("bob@example.com")
        note = await make_note(owner)
        await grant(note, bob, "editor")

        await revoke_access(db_session, owner.id, note.id, bob.id)
        await revoke_access(db_session, owner.id, note.id, bob.id)

        assert await roles_on(db_session, note.id) == {}

    @pytest.mark.asyncio
    async def test_editor_cannot_revoke(self, db_session, make_user, make_note, grant):
        owner = await make_user("owner@example.com")
        editor = await make_user("editor@example.com")
        bob = await make_user("bob@example.com")
        note = await make_note(owner)
        await grant(note, editor, "editor")
        await grant(note, bob, "viewer")

        before = await roles_on(db_session, note.id)
        with pytest.raises(ForbiddenError):
            await revoke_access(db_session, editor.id, note.id, bob.id)

        assert await roles_on(db_session, note.id) == before == {editor.id: "editor", bob.id: "viewer"}

    @pytest.mark.asyncio
    async def test_list_access_includes_user_details(self, db_session, make_user, make_note, grant):
        owner = await make_user("owner@example.com")
        bob = await make_user("bob@example.com", display_name="Bob")
        note = await make_note(owner)
        await grant(note, bob, "viewer")

        accesses = await list_access(db_session, note.id)

        assert len(accesses) == 1
        assert accesses[0]["email"] == "bob@example.com"
        assert accesses[0]["display_name"] == "Bob"
        assert accesses[0]["role"] == "viewer"


class TestInvites:
    @pytest.mark.asyncio
    async def test_invite_and_accept_with_different_case(self, db_session, make_user, make_note, notifier):
        owner = await make_user("owner@example.com")
        note = await make_note(owner, title="Q1 plan")

        invite = await create_invite(db_session, owner.id, note.id, "ALICE@x.com", Role.EDITOR, notifier)
        assert invite.invitee_email == "alice@x.com"
        assert len(invite.id) >= 32

        alice = await make_user("alice@x.com")
        access = await accept_invite(db_session, alice.id, invite.id)

        assert access.role == "editor"
        await db_session.refresh(invite)
        assert invite.accepted is True

        notifier.send_invite.assert_awaited_once()
        message = notifier.send_invite.await_args.args[0]
        assert isinstance(message, InviteEmail)
        assert message.invitee_email == "alice@x.com"
        assert message.inviter_email == "owner@example.com"
        assert message.note_title == "Q1 plan"
        assert message.accept_url.endswith(f"/invite/{invite.id}")

    @pytest.mark.asyncio
    async def test_accepting_twice_keeps_one_grant(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        invite = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.VIEWER)
        alice = await make_user("alice@x.com")

        first = await accept_invite(db_session, alice.id, invite.id)
        second = await accept_invite(db_session, alice.id, invite.id)

        assert first.id == second.id
        assert await roles_on(db_session, note.id) == {alice.id: "viewer"}

    @pytest.mark.asyncio
    async def test_expired_invite(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        invite = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.VIEWER)
        invite.expires_at = utcnow() - timedelta(minutes=1)
        await db_session.commit()
        alice = await make_user("alice@x.com")

        with pytest.raises(ExpiredError):
            await accept_invite(db_session, alice.id, invite.id)
        assert await roles_on(db_session, note.id) == {}

    @pytest.mark.asyncio
    async def test_email_mismatch_is_forbidden(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        invite = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.VIEWER)
        mallory = await make_user("mallory@x.com")

        with pytest.raises(ForbiddenError):
            await accept_invite(db_session, mallory.id, invite.id)

    @pytest.mark.asyncio
    async def test_unknown_token(self, db_session, make_user):
        alice = await make_user("alice@x.com")
        with pytest.raises(NotFoundError):
            await accept_invite(db_session, alice.id, "no-such-token")

    @pytest.mark.asyncio
    async def test_reinvite_refreshes_pending_invite(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)

        first = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.VIEWER)
        second = await create_invite(db_session, owner.id, note.id, "Alice@X.com", Role.EDITOR)

        assert first.id == second.id
        pending = await list_invites(db_session, owner.id, note.id)
        assert [(invite.id, invite.role) for invite in pending] == [(first.id, "editor")]

    @pytest.mark.asyncio
    async def test_owner_accepting_own_invite_grants_nothing(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        invite = await create_invite(db_session, owner.id, note.id, "owner@example.com", Role.VIEWER)

        assert await accept_invite(db_session, owner.id, invite.id) is None
        assert await roles_on(db_session, note.id) == {}

    @pytest.mark.asyncio
    async def test_mail_failure_keeps_invite(self, db_session, make_user, make_note, notifier):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        notifier.send_invite.side_effect = RuntimeError("smtp down")

        invite = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.VIEWER, notifier)

        result = await db_session.execute(select(NoteInvite).where(NoteInvite.id == invite.id))
        assert result.scalar_one().invitee_email == "alice@x.com"

    @pytest.mark.asyncio
    async def test_viewer_cannot_invite(self, db_session, make_user, make_note, grant):
        owner = await make_user("owner@example.com")
        viewer = await make_user("viewer@example.com")
        note = await make_note(owner)
        await grant(note, viewer, "viewer")

        with pytest.raises(ForbiddenError):
            await create_invite(db_session, viewer.id, note.id, "alice@x.com", Role.VIEWER)


class TestOwnerDecisionsStick:
    @pytest.mark.asyncio
    async def test_demoted_collaborator_cannot_reaccept_old_role(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        invite = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.EDITOR)
        alice = await make_user("alice@x.com")
        await accept_invite(db_session, alice.id, invite.id)

        await change_role(db_session, owner.id, note.id, alice.id, Role.VIEWER)
        access = await accept_invite(db_session, alice.id, invite.id)

        assert access.role == "viewer"
        assert await roles_on(db_session, note.id) == {alice.id: "viewer"}

    @pytest.mark.asyncio
    async def test_revoked_collaborator_cannot_reaccept(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        invite = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.EDITOR)
        alice = await make_user("alice@x.com")
        await accept_invite(db_session, alice.id, invite.id)

        await revoke_access(db_session, owner.id, note.id, alice.id)

        assert await accept_invite(db_session, alice.id, invite.id) is None
        assert await roles_on(db_session, note.id) == {}

    @pytest.mark.asyncio
    async def test_revoke_retires_pending_invites(self, db_session, make_user, make_note, grant):
        owner = await make_user("owner@example.com")
        alice = await make_user("alice@x.com")
        note = await make_note(owner)
        await grant(note, alice, "viewer")
        pending = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.EDITOR)

        await revoke_access(db_session, owner.id, note.id, alice.id)

        assert await list_invites(db_session, owner.id, note.id) == []
        assert await accept_invite(db_session, alice.id, pending.id) is None
        assert await roles_on(db_session, note.id) == {}

    @pytest.mark.asyncio
    async def test_new_invite_after_revoke_works(self, db_session, make_user, make_note):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)
        first = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.EDITOR)
        alice = await make_user("alice@x.com")
        await accept_invite(db_session, alice.id, first.id)
        await revoke_access(db_session, owner.id, note.id, alice.id)

        second = await create_invite(db_session, owner.id, note.id, "alice@x.com", Role.VIEWER)
        access = await accept_invite(db_session, alice.id, second.id)

        assert second.id != first.id
        assert access.role == "viewer"


class TestShareNote:
    @pytest.mark.asyncio
    async def test_registered_email_gets_access_now(self, db_session, make_user, make_note, notifier):
        owner = await make_user("owner@example.com")
        bob = await make_user("bob@example.com")
        note = await make_note(owner)

        result = await share_note(db_session, owner.id, note.id, " Bob@Example.com ", Role.EDITOR, notifier)

        assert result["invite_id"] is None
        assert [(a["user_id"], a["role"]) for a in result["accesses"]] == [(bob.id, "editor")]
        notifier.send_invite.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_email_gets_an_invite(self, db_session, make_user, make_note, notifier):
        owner = await make_user("owner@example.com")
        note = await make_note(owner)

        result = await share_note(db_session, owner.id, note.id, "newcomer@example.com", Role.VIEWER, notifier)

        assert result["accesses"] == []
        assert result["invite_id"] is not None
        notifier.send_invite.assert_awaited_once()
