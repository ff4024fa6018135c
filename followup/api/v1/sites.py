# followup/api/v1/sites.py
from fastapi import APIRouter, Depends

from followup.automation.factory import is_automation_available
from followup.core.dependencies import get_repository

router = APIRouter()


@router.get("")
def list_sites(repository=Depends(get_repository)):
    """Automation profiles with their credentials reduced to a presence flag."""
    sites = []
    for profile in repository.list_automation_profiles():
        view = profile.public_view()
        view["automation_available"] = is_automation_available(profile)
        sites.append(view)
    return {"success": True, "sites": sites, "count": len(sites)}
