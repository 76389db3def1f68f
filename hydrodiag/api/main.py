"""FastAPI 主应用"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hydrodiag import __version__
from hydrodiag.api.agent import router as agent_router
from hydrodiag.api.session import router as session_router

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# 创建 FastAPI 应用
app = FastAPI(
    title="Hydraulic Troubleshooting API",
    description="基于知识图谱信念更新的液压系统故障诊断",
    version=__version__,
)

# 配置 CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应该限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(agent_router, prefix="/api", tags=["agent"])
app.include_router(session_router, prefix="/api", tags=["session"])


@app.get("/")
def root():
    return {
        "message": "Hydraulic Troubleshooting API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
def health():
    """健康检查"""
    return {"status": "ok"}
