#!/usr/bin/env python
"""Django's command-line utility for administrative tasks."""
import os
import sys


def main():
    # `manage.py test` runs against SQLite, the in-memory channel layer and eager Celery
    default_settings = 'delivery_backend.settings.test' if sys.argv[1:2] == ['test'] else 'delivery_backend.settings.settings'
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', default_settings)
    from django.core.management import execute_from_command_line

    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
