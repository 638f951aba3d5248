import hypothesis
import pytest

from irdeps.settings import Settings, anchor_settings

############
# PATCHING #
############


# disable hypothesis deadline globally
hypothesis.settings.register_profile("ci", deadline=None)
hypothesis.settings.load_profile("ci")


@pytest.fixture(autouse=True)
def global_settings():
    # isolate tests from IRDEPS_* environment variables and from each other
    settings = Settings()
    with anchor_settings(settings):
        yield settings
