"""
Conversation history endpoints (the AI Lab's saved chats).

Handlers that only touch the store are plain ``def`` so FastAPI runs them in
its threadpool; the store may be writing a JSON file.
"""
from fastapi import APIRouter, Depends, Response

from agrimate.config import Settings, get_settings
from agrimate.di import get_conversation_store, get_model_factory
from agrimate.llm.chain import ChatModelFactory, chain_from_settings
from agrimate.schemas import ActiveConversation, ConversationCreate, ConversationList, ConversationRename, SendMessage
from agrimate.stores.chat_store import ConversationStore

router = APIRouter(tags=["conversations"], prefix="/conversations")


@router.get("", response_model=ConversationList)
def list_conversations(store: ConversationStore = Depends(get_conversation_store)):
    return store.snapshot()


@router.post("", status_code=201)
def create_conversation(req: ConversationCreate,
                        store: ConversationStore = Depends(get_conversation_store)):
    return store.create_conversation(req.title)


@router.put("/active", response_model=ConversationList)
def set_active(req: ActiveConversation,
               store: ConversationStore = Depends(get_conversation_store)):
    store.set_active_conversation(req.id)
    return store.snapshot()


@router.get("/{conversation_id}")
def get_conversation(conversation_id: str,
                     store: ConversationStore = Depends(get_conversation_store)):
    return store.get_conversation(conversation_id)


@router.patch("/{conversation_id}")
def rename_conversation(conversation_id: str, req: ConversationRename,
                        store: ConversationStore = Depends(get_conversation_store)):
    return store.rename_conversation(conversation_id, req.title)


@router.delete("/{conversation_id}", status_code=204)
def delete_conversation(conversation_id: str,
                        store: ConversationStore = Depends(get_conversation_store)):
    store.delete_conversation(conversation_id)
    return Response(status_code=204)


@router.delete("/{conversation_id}/messages", status_code=204)
def clear_conversation(conversation_id: str,
                       store: ConversationStore = Depends(get_conversation_store)):
    store.clear_conversation(conversation_id)
    return Response(status_code=204)


@router.post("/{conversation_id}/messages")
async def send_message(
    conversation_id: str,
    req: SendMessage,
    settings: Settings = Depends(get_settings),
    model_factory: ChatModelFactory = Depends(get_model_factory),
    store: ConversationStore = Depends(get_conversation_store),
):
    """
    Store the user turn and the model's reply. Provider failures come back as
    an assistant message with ``error: true`` rather than an HTTP error.
    """
    async def reply_fn(messages):
        chain = chain_from_settings(settings, model_factory)
        return await chain.complete(messages)

    return await store.send_message(
        conversation_id, req.message, reply_fn, limit=settings.HISTORY_LIMIT,
    )
