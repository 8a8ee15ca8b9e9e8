import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
        # Scratch videos and the SQLite file must not trigger reloads
        reload_excludes=["*.db", "*.wav", "*.mp4"]
    )
