# generate_vapid_keys.py
from app.core.vapid import generate_vapid_keys


def main():
    print("Gerando novo par de chaves VAPID (P-256)...")
    public_key, private_key = generate_vapid_keys()

    print("Copie para o .env do servidor e atualize a chave pública no app:")
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    print("Atenção: as inscrições antigas deixam de funcionar até serem recriadas.")

if __name__ == "__main__":
    main()
