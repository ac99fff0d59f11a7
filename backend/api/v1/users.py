from fastapi import APIRouter, Depends
from api.dependencies import get_current_user_id
from schemas.user_schema import ProfileUpdate
from services.user_service import get_user_profile, update_user_profile
from utils.responses import no_store_json
from utils.timing import timeit

router = APIRouter()

@router.post("/profile")
@timeit("save_profile")
async def save_profile(profile: ProfileUpdate, user_id: str = Depends(get_current_user_id)):
    return no_store_json(await update_user_profile(user_id, profile))

@router.get("/me")
@timeit("read_me")
async def read_me(user_id: str = Depends(get_current_user_id)):
    return no_store_json(await get_user_profile(user_id))
