from ping_backend.models import Follow, User, UserBlock


async def follow(db, follower: User, followee: User) -> None:
    db.add(Follow(follower_id=follower.id, followee_id=followee.id))
    await db.flush()


async def make_friends(db, a: User, b: User) -> None:
    await follow(db, a, b)
    await follow(db, b, a)


async def block(db, blocker: User, blocked: User) -> None:
    db.add(UserBlock(blocker_id=blocker.id, blocked_id=blocked.id))
    await db.flush()
