"""
Media app: single-use upload targets for chat media.

This app provides:
- UploadTarget model (opaque reference for one uploaded file)
- UploadTargetService for allocation, byte receipt, consumption and URLs
- A periodic task that expires unused targets
"""
