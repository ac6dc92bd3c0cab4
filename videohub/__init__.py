"""VideoHub transcoding backend.

Accepts video uploads, transcodes them into streaming-friendly renditions
with an external encoder, and reports encode progress while it runs.

Modules:
    - core: Configuration, storage layout, logging, metrics, tracing
    - modules.transcoding: Encoder invocation, progress registry, progress publishing
    - modules.video: Upload handling and rendition catalog
"""

__version__ = "0.1.0"
