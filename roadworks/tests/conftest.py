import os

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "project.settings")
django.setup()

from roadworks.tests.fixtures import *  # noqa: F401,F403,E402
