import os
import tempfile

import django


# Ensure Django settings are configured before importing app modules in tests.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "svg_image_site.settings")
# Keep media, metrics and the sqlite file out of the working tree.
os.environ.setdefault("DJANGO_STORAGE_DIR", tempfile.mkdtemp(prefix="svg-image-tests-"))
django.setup()
