"""Application modules.

- transcoding: encoder jobs, progress registry and progress publishing
- video: uploads and their renditions
"""
