import asyncio
import sys

from campusmart.client.session import ChatIdentity, ChatSessionClient


async def main(user_id: str, token: str) -> None:
    client = ChatSessionClient()
    client.store.subscribe(
        lambda chat_id: print(f"[{chat_id}] {[m.content for m in client.store.messages_for(chat_id)]}")
    )
    client.on_status(lambda data: print(f"status: {data}"))
    await client.connect(ChatIdentity(user_id=user_id, token=token))
    print(f"Подключено как {user_id}, ожидаем сообщения...")
    try:
        await asyncio.sleep(60)
    finally:
        print(f"Онлайн: {client.store.online_users}")
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1], sys.argv[2]))
