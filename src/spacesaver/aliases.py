from spacesaver.compression.plugins import AnimatedWebPConverter, ImageZipToWebpZip, WebPConverter
from spacesaver.core.hasher import ALGORITHM_NAMES

PLUGIN_ALIASES = {
    "zip": ImageZipToWebpZip.NAME,
    "webp": WebPConverter.NAME,
    "gif": AnimatedWebPConverter.NAME,
}

PLUGIN_CHOICES = list(PLUGIN_ALIASES.keys())

PLUGIN_HELP_TEXT = (
    "Transcoders to use, in order of preference (space separated):\n"
    "  zip   : Image ZIP to WebP ZIP (archives made only of images)\n"
    "  webp  : WebP Converter (PNG, JPEG, BMP, TIFF)\n"
    "  gif   : Animated WebP Converter (needs gif2webp or ffmpeg)\n"
    "Full transcoder names are accepted as well. Default: all, in registration order\n"
)


def resolve_plugin_name(name: str) -> str:
    """'webp' → 'WebP Converter'; anything else is returned unchanged."""
    return PLUGIN_ALIASES.get(name.strip().lower(), name)


ALGORITHM_CHOICES = list(ALGORITHM_NAMES)

ALGORITHM_HELP_TEXT = (
    "Content hash algorithm:\n"
    "  blake2b : cryptographic, default\n"
    "  sha256  : cryptographic, widely available\n"
    "  xxh128  : much faster, not cryptographic\n"
)

EPILOG_TEXT = """
Examples:
  Find duplicates in Downloads
  %(prog)s duplicates ~/Downloads

  Only compare JPEG and PNG files between 500KB and 10MB
  %(prog)s duplicates ~/Downloads -m 500KB -M 10MB -x jpg png

  Same as above + move duplicates to trash (with confirmation prompt)
  %(prog)s duplicates ~/Downloads -m 500KB -M 10MB -x jpg png --keep-one

  Count files and bytes per kind, ignoring files under 1MB
  %(prog)s stats ~/Downloads -m 1MB

  List transcoders
  %(prog)s plugins

  Show which files could be shrunk, and why the others cannot
  %(prog)s check ~/Pictures --plugins webp zip

  Shrink images, writing converted still images to ~/Pictures/webp
  %(prog)s compress ~/Pictures -o ~/Pictures/webp --order webp -j 8
"""
