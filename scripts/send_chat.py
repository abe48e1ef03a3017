import asyncio
import sys

from campusmart.client.session import ChatIdentity, ChatSessionClient


async def main(user_id: str, token: str, listing_id: str, text: str) -> None:
    # Без connect(): сообщение уходит через REST
    client = ChatSessionClient()
    client.identity = ChatIdentity(user_id=user_id, token=token)
    client.api.set_token(token)
    try:
        chat = await client.start_conversation(listing_id, text)
        print(f"Чат {chat['id']}")
        for message in client.store.messages_for(chat["id"]):
            print(f"{message.sender.id}: {message.content}")
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:5]))
