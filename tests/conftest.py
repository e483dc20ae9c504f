from unitwork.testkit.fixtures import *  # noqa: F401,F403
