from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from app.services.storage import BlobStoreError, LocalBlobStore, get_blob_store

router = APIRouter()


@router.get(
    "/object/public/{bucket}/{key:path}",
    summary="Get public object",
    description="Download a stored task image by its public URL.",
)
async def get_public_object(bucket: str, key: str, blobs: LocalBlobStore = Depends(get_blob_store)):
    if bucket != blobs.bucket:
        raise HTTPException(status_code=404, detail="Bucket not found")

    try:
        path = blobs.path_for(key)
    except BlobStoreError:
        raise HTTPException(status_code=404, detail="Object not found")

    if not path.is_file():
        raise HTTPException(status_code=404, detail="Object not found")

    return FileResponse(path=path)
