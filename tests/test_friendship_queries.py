"""
Tests for derived friendship queries: friends, blocked users, pending
invitations, counts and mutual friends
"""


async def befriend(service, requester_id, recipient_id):
    await service.invite(requester_id, recipient_id)
    await service.approve(recipient_id, requester_id)


class TestFriends:

    async def test_friends_in_both_directions(self, service, users):
        u1, u2, u3, _ = users
        await befriend(service, u1, u2)
        await befriend(service, u3, u1)

        assert await service.friends(u1) == {u2, u3}
        assert await service.invited(u1) == {u2}
        assert await service.invited_by(u1) == {u3}
        assert await service.friends(u2) == {u1}
        assert await service.total_friends(u1) == 2

    async def test_scenario_common_friends(self, service, users):
        u1, u2, u3, _ = users
        await service.invite(u1, u2)
        await service.approve(u2, u1)
        await service.invite(u1, u3)
        await service.approve(u3, u1)

        assert await service.friends(u1) == {u2, u3}
        assert await service.common_friends_with(u2, u3) == {u1}
        assert await service.common_friends_with(u3, u2) == {u1}

    async def test_common_friends_is_symmetric(self, service, users):
        u1, u2, u3, u4 = users
        await befriend(service, u1, u3)
        await befriend(service, u2, u3)
        await befriend(service, u4, u1)
        await befriend(service, u2, u4)
        await service.invite(u1, u2)

        forward = await service.common_friends_with(u1, u2)
        backward = await service.common_friends_with(u2, u1)
        assert forward == backward == {u3, u4}

    async def test_pending_and_blocked_are_not_friends(self, service, users):
        u1, u2, u3, u4 = users
        await service.invite(u1, u2)
        await befriend(service, u1, u3)
        await service.add_friend(u4, u1, "manual")
        await service.block_friend(u4, u1)

        assert await service.friends(u1) == {u3}
        assert await service.total_friends(u1) == 1
        assert await service.friends(u4) == set()

    async def test_total_matches_friends(self, service, users):
        u1, u2, u3, u4 = users
        await befriend(service, u1, u2)
        await service.add_friend(u3, u1, "manual")
        await service.invite(u4, u1)
        await befriend(service, u2, u3)
        await service.block_friend(u3, u2)

        for user_id in users:
            assert await service.total_friends(user_id) == len(await service.friends(user_id))

    async def test_no_relationships(self, service, users):
        u1, u2, _, _ = users
        assert await service.friends(u1) == set()
        assert await service.total_friends(u1) == 0
        assert await service.blocked_friends(u1) == set()
        assert await service.total_blocked_friends(u1) == 0
        assert await service.common_friends_with(u1, u2) == set()
        assert not await service.is_friend_with(u1, u2)
        assert not await service.is_blocked_friend(u1, u2)
        assert not await service.is_connected_with(u1, u2)
        assert not await service.is_invited(u1, u2)
        assert not await service.is_invited_by(u1, u2)


class TestPendingInvitations:

    async def test_pending_lists(self, service, users):
        u1, u2, u3, u4 = users
        await service.invite(u1, u2)
        await service.invite(u1, u3)
        await service.invite(u4, u1)
        await service.approve(u3, u1)

        assert await service.pending_invited(u1) == {u2}
        assert await service.pending_invited_by(u1) == {u4}
        assert await service.pending_invited_by(u2) == {u1}
        assert await service.pending_invited(u2) == set()

    async def test_blocked_invitation_is_not_pending(self, service, users):
        u1, u2, _, _ = users
        await service.invite(u1, u2)
        await service.block_friend(u2, u1)

        assert await service.pending_invited(u1) == set()
        assert await service.pending_invited_by(u2) == set()


class TestBlockedFriends:

    async def test_blocked_from_both_sides(self, service, users):
        u1, u2, u3, u4 = users
        await befriend(service, u1, u2)
        await befriend(service, u3, u1)
        await befriend(service, u1, u4)
        await service.block_friend(u1, u2)
        await service.block_friend(u1, u3)
        await service.block_friend(u4, u1)

        assert await service.blockades(u1) == {u2, u3}
        assert await service.blockades_by(u1) == {u4}
        assert await service.blocked_friends(u1) == {u2, u3, u4}
        assert await service.total_blocked_friends(u1) == 3

    async def test_blocked_is_visible_to_the_blocked_user(self, service, users):
        u1, u2, _, _ = users
        await befriend(service, u1, u2)
        await service.block_friend(u1, u2)

        assert await service.is_blocked_friend(u1, u2)
        assert await service.is_blocked_friend(u2, u1)
        assert await service.blockades(u2) == set()
        assert await service.blockades_by(u2) == {u1}

    async def test_blocked_pending_invitation(self, service, users):
        u1, u2, _, _ = users
        await service.invite(u1, u2)
        await service.block_friend(u2, u1)

        assert await service.blocked_friends(u2) == {u1}
        assert await service.blockades(u2) == {u1}
        assert await service.total_blocked_friends(u2) == 1

    async def test_total_blocked_matches_blocked(self, service, users):
        u1, u2, u3, u4 = users
        await befriend(service, u1, u2)
        await service.invite(u3, u1)
        await service.add_friend(u4, u2, "manual")
        await service.block_friend(u2, u1)
        await service.block_friend(u1, u3)
        await service.block_friend(u4, u2)

        for user_id in users:
            assert await service.total_blocked_friends(user_id) == len(await service.blocked_friends(user_id))

    async def test_unrelated_blocks_are_ignored(self, service, users):
        u1, u2, u3, _ = users
        await befriend(service, u2, u3)
        await service.block_friend(u2, u3)

        assert await service.blocked_friends(u1) == set()
        assert not await service.is_blocked_friend(u1, u2)
