import os
from concurrent.futures import ThreadPoolExecutor

os.environ.setdefault("DB_BACKEND", "sqlite")

from core.models import Follow, User


def test_concurrent_follows_of_one_target(services, register, load, count_rows):
    register("alice")
    fans = [register(f"fan{index:02d}") for index in range(8)]

    with ThreadPoolExecutor(max_workers=4) as executor:
        results = list(executor.map(lambda token: services.follows.follow_user(token, "alice"), fans))

    assert all(result["status"] == "followed" for result in results)
    assert load(User, "alice").follower_count == len(fans)
    assert count_rows(Follow, Follow.followee_username == "alice") == len(fans)


def test_concurrent_follow_and_unfollow_keep_counters_exact(services, register, load, count_rows):
    register("alice")
    fans = [register(f"fan{index:02d}") for index in range(6)]
    for token in fans[:3]:
        services.follows.follow_user(token, "alice")

    jobs = [(token, "unfollow") for token in fans[:3]] + [(token, "follow") for token in fans[3:]]
    with ThreadPoolExecutor(max_workers=4) as executor:
        results = list(executor.map(lambda job: services.follows.follow_user(job[0], "alice", job[1]), jobs))

    assert all(result["status"] != "error" for result in results)
    assert load(User, "alice").follower_count == count_rows(Follow, Follow.followee_username == "alice") == 3


def test_concurrent_cross_follows_keep_counters_exact(services, register, load, count_rows):
    tokens = {name: register(name) for name in ("alice", "bobcat", "cleo", "dusty")}
    jobs = [(tokens[follower], followee) for follower in tokens for followee in tokens if follower != followee]

    with ThreadPoolExecutor(max_workers=4) as executor:
        results = list(executor.map(lambda job: services.follows.follow_user(job[0], job[1]), jobs))

    assert all(result["status"] == "followed" for result in results)
    for name in tokens:
        user = load(User, name)
        assert user.follower_count == count_rows(Follow, Follow.followee_username == name) == 3
        assert user.following_count == count_rows(Follow, Follow.follower_username == name) == 3
