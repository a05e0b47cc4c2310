from typing import Optional

from fastapi import APIRouter, Depends

from syntaxmap.auth import Principal, current_user, require_user
from syntaxmap.dictionary import DictionaryService
from syntaxmap.routes.deps import get_dictionary_service
from syntaxmap.schemas import DictionaryCreate, DictionaryUpdate

router = APIRouter(prefix="/dictionnary", tags=["Dictionary"])


@router.get("")
def all_words(principal: Principal = Depends(current_user),
              service: DictionaryService = Depends(get_dictionary_service)):
    return {"success": True, "dictionnary": service.all_words()}


@router.get("/user")
def user_words(learned: Optional[bool] = None, principal: Principal = Depends(require_user),
               service: DictionaryService = Depends(get_dictionary_service)):
    return {"success": True, "dictionnary": service.user_words(principal.user_id, learned)}


@router.post("", status_code=201)
def add_word(body: DictionaryCreate, principal: Principal = Depends(require_user),
             service: DictionaryService = Depends(get_dictionary_service)):
    entry = service.add_word(principal.user_id, body.model_dump())
    return {"success": True, "message": "Word added to dictionary", "word": entry}


@router.put("/{word_id}")
def update_word(word_id: int, body: DictionaryUpdate, principal: Principal = Depends(require_user),
                service: DictionaryService = Depends(get_dictionary_service)):
    entry = service.update_word(word_id, principal.user_id, body.model_dump(exclude_unset=True))
    return {"success": True, "message": "Word updated successfully", "word": entry}


@router.delete("/{word_id}")
def delete_word(word_id: int, principal: Principal = Depends(require_user),
                service: DictionaryService = Depends(get_dictionary_service)):
    service.delete_word(word_id, principal.user_id)
    return {"success": True, "message": "Word deleted successfully"}


@router.put("/{word_id}/learned")
def toggle_learned(word_id: int, principal: Principal = Depends(require_user),
                   service: DictionaryService = Depends(get_dictionary_service)):
    entry = service.toggle_learned(word_id, principal.user_id)
    return {"success": True, "message": "Learned status toggled successfully",
            "learned": entry["learned"], "word": entry}
