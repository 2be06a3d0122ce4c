from django.apps import AppConfig


class SvgImageConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "svg_image"
    verbose_name = "SVG image formatter"

    def ready(self) -> None:
        from .conf import default_render_settings

        # Surface a broken SVG_IMAGE_FORMATTER at startup, not on first render.
        default_render_settings()
